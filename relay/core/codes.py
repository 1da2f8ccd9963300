from __future__ import annotations

from enum import IntEnum


# ---------------------------------------------------------------------------
# Request codes (field 1 of every request)
# ---------------------------------------------------------------------------

class RequestCode(IntEnum):
    LOGIN = 0
    LIST_CHATS = 1
    GET_CHAT_BY_INDEX = 2
    GET_CHAT_NAME = 3
    POLL_CHAT_UPDATES = 4
    LIST_USERS = 5
    GET_USER_BY_INDEX = 6
    GET_USER_NICKNAME = 7
    POLL_USER_UPDATES = 8
    POLL_NEW_MESSAGE = 9
    SEND_MESSAGE = 10
    LOGOUT = 11
    KEEP_ALIVE = 12
    SET_NICKNAME = 13
    GET_USER_PICTURE = 14
    SET_USER_PICTURE = 15
    CREATE_CHAT_ROOM = 16


# ---------------------------------------------------------------------------
# Result codes (field 0 of every reply)
# ---------------------------------------------------------------------------

class ResultCode(IntEnum):
    SUCCESS = 0
    COULD_NOT_CONNECT = -1
    USERNAME_TAKEN = -2
    UNKNOWN_USERNAME = -3
    NOT_LOGGED_IN = -4
    ALREADY_LOGGED_IN = -5
    UNKNOWN_CHAT = -6
    BAD_REQUEST = -7
    FAILURE_UNKNOWN = -8


# ---------------------------------------------------------------------------
# Change-event tags queued in mailboxes
# ---------------------------------------------------------------------------

class ChangeCode(IntEnum):
    """A user joined/left, or a chat was added/removed, or a profile field changed."""

    CONNECTED = 1
    DISCONNECTED = 2
    NICKNAME_CHANGED = 3
    PICTURE_CHANGED = 4


__all__ = ["RequestCode", "ResultCode", "ChangeCode"]
