from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Union

from .codes import ChangeCode, RequestCode, ResultCode
from .distributor import Distributor
from .errors import (
    AlreadyLoggedInError,
    NotLoggedInError,
    ProtocolError,
    RelayError,
    UnknownOperationError,
    UsernameTakenError,
)
from .imaging import decode_image, encode_image
from .models import Message, ToChat, ToUser, User
from .proto import (
    Request,
    encode_reply,
    format_flag,
    parse_flag,
    parse_int,
    parse_request,
    parse_timestamp,
)
from .registry import EntityRegistry
from .sessions import Session, SessionManager

log = logging.getLogger("relay.dispatcher")


@dataclass(slots=True)
class HandlerContext:
    session: Session
    registry: EntityRegistry
    sessions: SessionManager
    distributor: Distributor

    @property
    def user(self) -> User:
        assert self.session.user is not None
        return self.session.user


Fields = List[str]
HandlerFn = Callable[..., Fields]


@dataclass(frozen=True)
class Operation:
    code: RequestCode
    fn: HandlerFn
    arity: int
    requires_login: bool = True


OPERATIONS: Dict[int, Operation] = {}


def operation(code: RequestCode, arity: int = 0, *, requires_login: bool = True):
    def decorator(fn: HandlerFn) -> HandlerFn:
        OPERATIONS[int(code)] = Operation(code, fn, arity, requires_login)
        return fn
    return decorator


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@operation(RequestCode.LOGIN, arity=2, requires_login=False)
def login(ctx: HandlerContext, username: str, nickname: str) -> Fields:
    if ctx.session.active:
        raise AlreadyLoggedInError(ctx.session.token)
    if ctx.registry.user_exists(username):
        raise UsernameTakenError(username)

    user = User(username=username, nickname=nickname, session_token=ctx.session.token)
    # announce before joining so the newcomer does not hear about itself
    ctx.distributor.distribute_user_change(user, ChangeCode.CONNECTED)
    ctx.registry.add_user(user)
    ctx.sessions.bind_user(ctx.session, user)
    return []


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------

@operation(RequestCode.LIST_CHATS)
def list_chats(ctx: HandlerContext) -> Fields:
    return [str(len(ctx.registry.chats))]


@operation(RequestCode.GET_CHAT_BY_INDEX, arity=1)
def get_chat_by_index(ctx: HandlerContext, index: str) -> Fields:
    return [str(ctx.registry.chat_at(parse_int(index)).id)]


@operation(RequestCode.GET_CHAT_NAME, arity=1)
def get_chat_name(ctx: HandlerContext, chat_id: str) -> Fields:
    return [ctx.registry.get_chat(parse_int(chat_id)).name]


@operation(RequestCode.LIST_USERS)
def list_users(ctx: HandlerContext) -> Fields:
    return [str(len(ctx.registry.users))]


@operation(RequestCode.GET_USER_BY_INDEX, arity=1)
def get_user_by_index(ctx: HandlerContext, index: str) -> Fields:
    return [ctx.registry.user_at(parse_int(index)).username]


@operation(RequestCode.GET_USER_NICKNAME, arity=1)
def get_user_nickname(ctx: HandlerContext, username: str) -> Fields:
    return [ctx.registry.get_user(username).nickname]


# ---------------------------------------------------------------------------
# Polling (empty reply body means nothing pending)
# ---------------------------------------------------------------------------

def _join_changes(changes: List[ChangeCode]) -> str:
    return ",".join(str(int(c)) for c in changes)


@operation(RequestCode.POLL_CHAT_UPDATES)
def poll_chat_updates(ctx: HandlerContext) -> Fields:
    pending = ctx.user.mailbox.dequeue_chat_change()
    if pending is None:
        return []
    chat, changes = pending
    return [str(chat.id), _join_changes(changes)]


@operation(RequestCode.POLL_USER_UPDATES)
def poll_user_updates(ctx: HandlerContext) -> Fields:
    pending = ctx.user.mailbox.dequeue_user_change()
    if pending is None:
        return []
    subject, changes = pending
    return [subject.username, _join_changes(changes)]


@operation(RequestCode.POLL_NEW_MESSAGE)
def poll_new_message(ctx: HandlerContext) -> Fields:
    message = ctx.user.mailbox.dequeue_message()
    if message is None:
        return []
    target = message.target
    if isinstance(target, ToChat):
        recipient = str(target.chat.id)
    else:
        recipient = target.user.username
    return [
        message.sender.username,
        format_flag(message.to_user),
        recipient,
        message.body,
        message.sent_at,
    ]


# ---------------------------------------------------------------------------
# Messaging & profile
# ---------------------------------------------------------------------------

@operation(RequestCode.SEND_MESSAGE, arity=4)
def send_message(ctx: HandlerContext, to_user: str, recipient: str, body: str, sent_at: str) -> Fields:
    if parse_flag(to_user):
        parse_timestamp(sent_at)
        target: Union[ToChat, ToUser] = ToUser(ctx.registry.get_user(recipient))
    else:
        chat_id = parse_int(recipient)
        parse_timestamp(sent_at)
        target = ToChat(ctx.registry.get_chat(chat_id))

    ctx.distributor.distribute_message(Message(ctx.user, target, body, sent_at))
    return []


@operation(RequestCode.LOGOUT)
def logout(ctx: HandlerContext) -> Fields:
    ctx.sessions.logout(ctx.session)
    return []


@operation(RequestCode.KEEP_ALIVE)
def keep_alive(ctx: HandlerContext) -> Fields:
    # the dispatcher rearms every authenticated request; nothing else to do
    return []


@operation(RequestCode.SET_NICKNAME, arity=1)
def set_nickname(ctx: HandlerContext, nickname: str) -> Fields:
    ctx.user.nickname = nickname
    ctx.distributor.distribute_user_change(ctx.user, ChangeCode.NICKNAME_CHANGED)
    return []


def _picture_fields(user: User) -> Fields:
    if user.picture is None:
        return [format_flag(False)]
    return [format_flag(True), encode_image(user.picture)]


@operation(RequestCode.GET_USER_PICTURE, arity=1)
def get_user_picture(ctx: HandlerContext, username: str) -> Fields:
    return _picture_fields(ctx.registry.get_user(username))


@operation(RequestCode.SET_USER_PICTURE, arity=2)
def set_user_picture(ctx: HandlerContext, has_image: str, data: str) -> Fields:
    if not parse_flag(has_image):
        return _picture_fields(ctx.user)
    ctx.user.picture = decode_image(data)
    ctx.distributor.distribute_user_change(ctx.user, ChangeCode.PICTURE_CHANGED)
    return []


@operation(RequestCode.CREATE_CHAT_ROOM, arity=1)
def create_chat_room(ctx: HandlerContext, name: str) -> Fields:
    chat = ctx.registry.create_chat(name)
    ctx.distributor.distribute_chat_change(chat, ChangeCode.CONNECTED)
    return [str(chat.id)]


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class Dispatcher:
    """Turns one request into exactly one reply.

    Validation runs in a fixed order: known code, session state, arity, then whatever the
    handler parses and looks up. Every failure is folded into a result code here; nothing
    escapes a single request.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        sessions: SessionManager,
        distributor: Distributor,
        operations: Dict[int, Operation] = OPERATIONS,
    ) -> None:
        self.registry = registry
        self.sessions = sessions
        self.distributor = distributor
        self.operations = dict(operations)

    async def dispatch_raw(self, raw: Union[str, bytes]) -> str:
        try:
            request = parse_request(raw)
        except ProtocolError as exc:
            log.debug("Unparseable request: %s", exc)
            return encode_reply(ResultCode.BAD_REQUEST)
        return await self.dispatch(request)

    async def dispatch(self, request: Request) -> str:
        async with self.registry.lock:
            session = self.sessions.find_or_create(request.token)
            try:
                fields = self._execute(session, request)
            except RelayError as exc:
                log.debug(
                    "Request %d from %s failed: %s (%s)",
                    request.code, request.token, exc.result.name, exc,
                )
                return encode_reply(exc.result)
            except Exception:
                log.exception("Unhandled error in request %d from %s", request.code, request.token)
                return encode_reply(ResultCode.FAILURE_UNKNOWN)
        return encode_reply(ResultCode.SUCCESS, *fields)

    def _execute(self, session: Session, request: Request) -> Fields:
        op = self.operations.get(request.code)
        if op is None:
            raise UnknownOperationError(f"unknown operation {request.code}")
        if op.requires_login and not session.active:
            raise NotLoggedInError(session.token)

        ctx = HandlerContext(session, self.registry, self.sessions, self.distributor)
        try:
            if len(request.args) != op.arity:
                raise ProtocolError(
                    f"{op.code.name} takes {op.arity} argument(s), got {len(request.args)}"
                )
            return op.fn(ctx, *request.args)
        finally:
            if op.requires_login:
                self.sessions.rearm(session)


__all__ = ["Dispatcher", "HandlerContext", "Operation", "OPERATIONS", "operation"]
