"""
Portable error taxonomy and native error-code translation.

The native client reports failures as free text with an embedded code,
for example ``E [SQLSTATE=42000 SQLCODE=-201]``. The code is looked up in
``ERRORCODE_MAP`` and the matching ``DatabaseError`` subclass is raised.
"""
import re
from enum import Enum, auto
from types import MappingProxyType
from typing import Any


class ErrorKind(Enum):
    """Portable error kinds shared by every backend."""
    ERROR = auto()
    EXTENSION_NOT_FOUND = auto()
    CONNECT_FAILED = auto()
    NOT_CONNECTED = auto()
    SYNTAX = auto()
    NOSUCHTABLE = auto()
    NOSUCHFIELD = auto()
    CONSTRAINT = auto()
    CONSTRAINT_NOT_NULL = auto()
    ALREADY_EXISTS = auto()
    NODBSELECTED = auto()
    INVALID_DATE = auto()
    INVALID_NUMBER = auto()
    NOT_CAPABLE = auto()
    NEED_MORE_DATA = auto()
    TRUNCATED = auto()

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ErrorKind.ERROR: 'unknown error',
    ErrorKind.EXTENSION_NOT_FOUND: 'extension not found',
    ErrorKind.CONNECT_FAILED: 'connect failed',
    ErrorKind.NOT_CONNECTED: 'not connected',
    ErrorKind.SYNTAX: 'syntax error',
    ErrorKind.NOSUCHTABLE: 'no such table',
    ErrorKind.NOSUCHFIELD: 'no such field',
    ErrorKind.CONSTRAINT: 'constraint violation',
    ErrorKind.CONSTRAINT_NOT_NULL: 'null value violates not-null constraint',
    ErrorKind.ALREADY_EXISTS: 'already exists',
    ErrorKind.NODBSELECTED: 'no database selected',
    ErrorKind.INVALID_DATE: 'invalid date or time',
    ErrorKind.INVALID_NUMBER: 'invalid number',
    ErrorKind.NOT_CAPABLE: 'not capable',
    ErrorKind.NEED_MORE_DATA: 'insufficient data supplied',
    ErrorKind.TRUNCATED: "can't distinguish duplicate field names",
}

# Informix SQLCODE -> portable kind
ERRORCODE_MAP = MappingProxyType({
    '-201': ErrorKind.SYNTAX,
    '-206': ErrorKind.NOSUCHTABLE,
    '-217': ErrorKind.NOSUCHFIELD,
    '-239': ErrorKind.CONSTRAINT,
    '-253': ErrorKind.SYNTAX,
    '-292': ErrorKind.CONSTRAINT_NOT_NULL,
    '-310': ErrorKind.ALREADY_EXISTS,
    '-329': ErrorKind.NODBSELECTED,
    '-346': ErrorKind.CONSTRAINT,
    '-386': ErrorKind.CONSTRAINT_NOT_NULL,
    '-391': ErrorKind.CONSTRAINT_NOT_NULL,
    '-554': ErrorKind.SYNTAX,
    '-691': ErrorKind.CONSTRAINT,
    '-703': ErrorKind.CONSTRAINT_NOT_NULL,
    '-1204': ErrorKind.INVALID_DATE,
    '-1205': ErrorKind.INVALID_DATE,
    '-1206': ErrorKind.INVALID_DATE,
    '-1209': ErrorKind.INVALID_DATE,
    '-1210': ErrorKind.INVALID_DATE,
    '-1212': ErrorKind.INVALID_DATE,
    '-1213': ErrorKind.INVALID_NUMBER,
    })

_SQLCODE = re.compile(r'SQLCODE=(.*)]')


class DatabaseError(Exception):
    """Base class for all ifxdb errors.

    Carries the portable ``kind`` and the raw ``native`` diagnostic text
    reported by the client library (empty when the error did not come from
    the native layer).
    """

    def __init__(self, kind: ErrorKind = ErrorKind.ERROR, message: str | None = None,
                 native: str = '') -> None:
        self.kind = kind
        self.native = native
        self.message = message or kind.message
        super().__init__(f'{self.message} [{native}]' if native else self.message)


class ExtensionNotFound(DatabaseError):
    """The native client module could not be loaded.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or using a database connection.
    """


class QueryError(DatabaseError):
    """Error in query syntax or in the objects it references.
    """


class IntegrityViolationError(DatabaseError):
    """Database constraint violation error.
    """


class TypeConversionError(DatabaseError):
    """Value could not be converted to a date or number by the server.
    """


class NotCapableError(DatabaseError):
    """Operation not supported by this backend.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class MetadataIntegrityError(DatabaseError):
    """Result metadata is inconsistent with the reported column count.
    """


_EXCEPTIONS: dict[ErrorKind, type[DatabaseError]] = {
    ErrorKind.EXTENSION_NOT_FOUND: ExtensionNotFound,
    ErrorKind.CONNECT_FAILED: ConnectionFailure,
    ErrorKind.NOT_CONNECTED: ConnectionFailure,
    ErrorKind.SYNTAX: QueryError,
    ErrorKind.NOSUCHTABLE: QueryError,
    ErrorKind.NOSUCHFIELD: QueryError,
    ErrorKind.NODBSELECTED: QueryError,
    ErrorKind.CONSTRAINT: IntegrityViolationError,
    ErrorKind.CONSTRAINT_NOT_NULL: IntegrityViolationError,
    ErrorKind.ALREADY_EXISTS: IntegrityViolationError,
    ErrorKind.INVALID_DATE: TypeConversionError,
    ErrorKind.INVALID_NUMBER: TypeConversionError,
    ErrorKind.NOT_CAPABLE: NotCapableError,
    ErrorKind.NEED_MORE_DATA: ValidationError,
    ErrorKind.TRUNCATED: MetadataIntegrityError,
    }


def error_code(native: str | None) -> ErrorKind:
    """Map a native error signal to a portable error kind.

    Signals without an ``SQLCODE=<code>]`` marker, or with a code that is
    not in ``ERRORCODE_MAP``, map to ``ErrorKind.ERROR``.
    """
    match = _SQLCODE.search(native or '')
    if match:
        return ERRORCODE_MAP.get(match.group(1), ErrorKind.ERROR)
    return ErrorKind.ERROR


def exception_for(kind: ErrorKind) -> type[DatabaseError]:
    """Return the exception class raised for a portable error kind."""
    return _EXCEPTIONS.get(kind, DatabaseError)


def make_error(kind: ErrorKind, native: str = '', message: str | None = None) -> DatabaseError:
    """Build (but do not raise) the exception for a portable error kind.
    """
    return exception_for(kind)(kind, message, native)


def error_native(driver: Any, conn: Any = None) -> str:
    """Native code and message of the last error, for display only.
    """
    code = driver.error(conn) if conn is not None else driver.error()
    return f'{code} {driver.errormsg()}'
