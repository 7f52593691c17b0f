from enum import StrEnum


class FieldSizes:
    CODE = 6
    SESSION_ID = 32
    MEDIUM = 255
    LONG = 500


# Base32 lowercase alphabet: 32 symbols, 5 bits per character
SESSION_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz234567"
SESSION_ID_LENGTH = 32

CODE_LENGTH = 6

DEFAULT_SESSION_DURATION = 1800
DEFAULT_CODE_VALIDITY = 300

KEY_BYTES = 32
KEY_PREFIX = "base64:"

MIN_API_KEY_LENGTH = 16
DEFAULT_API_KEY_LENGTH = 32


class SessionState(StrEnum):
    UNVALIDATED = "unvalidated"
    VALIDATED = "validated"
    DELEGATED = "delegated"


class ErrorReason(StrEnum):
    EMPTY_TOKEN = "EMPTY_TOKEN"
    DUPLICATE_USER = "DUPLICATE_USER"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_PARENT_SESSION = "INVALID_PARENT_SESSION"
    PARENT_NOT_VALIDATED = "PARENT_NOT_VALIDATED"
    NESTED_DELEGATION = "NESTED_DELEGATION"
    INVALID_DURATION = "INVALID_DURATION"
    STORAGE_ERROR = "STORAGE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
