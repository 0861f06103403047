from enum import Enum


class ErrorCode(str, Enum):
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    EVENT_MISMATCH = "EVENT_MISMATCH"
    MISSING_USER = "MISSING_USER"
    MISSING_EVENT = "MISSING_EVENT"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"
    SERVER_ERROR = "SERVER_ERROR"
