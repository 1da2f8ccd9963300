from __future__ import annotations

import re
from datetime import datetime
from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .codes import ResultCode
from .errors import ProtocolError


# ---------------------------------------------------------------------------
# Wire framing
# ---------------------------------------------------------------------------

DELIMITER = "\n"

_INT_RE = re.compile(r"[+-]?\d+")
_TIMESTAMP_RE = re.compile(
    r"(?P<local>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2})?)"
    r"(?:(?<=:\d{2}:\d{2})\.(?P<fraction>\d{1,9}))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2}(?::\d{2})?)"
    r"(?:\[[^\]]+\])?",
    re.ASCII,
)


class Request(BaseModel):
    """One inbound request: ``token \\n code \\n arg1 \\n ... argN``."""

    token: str
    code: int
    args: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


def parse_request(raw: Union[str, bytes]) -> Request:
    """Split a raw payload into a Request, raising ProtocolError on anything unusable.

    Fields are kept exactly as split; an empty trailing field is still an argument.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("request is not UTF-8") from exc

    fields = raw.split(DELIMITER)
    if len(fields) < 2:
        raise ProtocolError("request needs a token and an operation code")

    token, code = fields[0], fields[1]
    if not _INT_RE.fullmatch(code):
        raise ProtocolError(f"operation code {code!r} is not an integer")
    try:
        return Request(token=token, code=int(code), args=fields[2:])
    except ValidationError as exc:
        raise ProtocolError(str(exc)) from exc


def encode_request(token: str, code: int, *args: object) -> str:
    return DELIMITER.join([token, str(int(code)), *(str(a) for a in args)])


def encode_reply(result: ResultCode, *fields: object) -> str:
    return DELIMITER.join([str(int(result)), *(str(f) for f in fields)])


def decode_reply(raw: str) -> tuple[ResultCode, List[str]]:
    head, *rest = raw.split(DELIMITER)
    return ResultCode(int(head)), rest


# ---------------------------------------------------------------------------
# Argument parsers
# ---------------------------------------------------------------------------

def parse_int(value: str) -> int:
    if not _INT_RE.fullmatch(value):
        raise ProtocolError(f"{value!r} is not an integer")
    return int(value)


def parse_flag(value: str) -> bool:
    """Only a case-insensitive ``true`` is true; any other text reads as false."""
    return value.lower() == "true"


def format_flag(value: bool) -> str:
    return "true" if value else "false"


def parse_timestamp(value: str) -> datetime:
    """Parse an extended ISO-8601 timestamp that carries a zone offset.

    The shape is ``YYYY-MM-DDTHH:MM[:SS[.f]]`` followed by ``Z`` or ``+HH:MM``, optionally
    with a bracketed region suffix such as ``[UTC]``. Nothing is trimmed; naive,
    space-separated and basic-format timestamps are rejected.
    """
    match = _TIMESTAMP_RE.fullmatch(value)
    if match is None:
        raise ProtocolError(f"bad timestamp {value!r}")
    text = match["local"]
    if match["fraction"]:
        text += "." + match["fraction"][:6].ljust(6, "0")
    offset = match["offset"]
    text += "+00:00" if offset == "Z" else offset
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ProtocolError(f"bad timestamp {value!r}") from exc


__all__ = [
    "DELIMITER",
    "Request",
    "parse_request",
    "encode_request",
    "encode_reply",
    "decode_reply",
    "parse_int",
    "parse_flag",
    "format_flag",
    "parse_timestamp",
]
