from __future__ import annotations

from .codes import ResultCode


class RelayError(Exception):
    """Base for every failure that maps onto a reply result code."""

    result: ResultCode = ResultCode.FAILURE_UNKNOWN


class ProtocolError(RelayError):
    result = ResultCode.BAD_REQUEST


class NotLoggedInError(RelayError):
    result = ResultCode.NOT_LOGGED_IN


class AlreadyLoggedInError(RelayError):
    result = ResultCode.ALREADY_LOGGED_IN


class UsernameTakenError(RelayError):
    result = ResultCode.USERNAME_TAKEN


class UnknownUserError(RelayError):
    result = ResultCode.UNKNOWN_USERNAME


class UnknownChatError(RelayError):
    result = ResultCode.UNKNOWN_CHAT


class UnknownOperationError(RelayError):
    result = ResultCode.FAILURE_UNKNOWN


class CodecError(RelayError):
    pass


class ImageDecodeError(CodecError):
    """Incoming picture payload is not valid base64 or not an image."""

    result = ResultCode.BAD_REQUEST


class ImageEncodeError(CodecError):
    """A stored picture could not be turned back into wire text."""

    result = ResultCode.FAILURE_UNKNOWN


__all__ = [
    "RelayError",
    "ProtocolError",
    "NotLoggedInError",
    "AlreadyLoggedInError",
    "UsernameTakenError",
    "UnknownUserError",
    "UnknownChatError",
    "UnknownOperationError",
    "CodecError",
    "ImageDecodeError",
    "ImageEncodeError",
]
