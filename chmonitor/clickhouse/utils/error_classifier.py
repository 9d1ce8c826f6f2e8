"""
Error classification for query execution failures.

Maps whatever a ClickHouse query raised into one of five error types that the
route layer turns into HTTP responses:

    ValidationError -> 400
    PermissionError -> 403
    TableNotFound   -> 404
    NetworkError    -> 503
    QueryError      -> 500

TableNotFound is a soft error: the dashboard shows it as an informational
state rather than a failure banner.
"""

import logging
import re
import socket
from enum import Enum
from typing import Any, Dict, Optional

from clickhouse_connect.driver.exceptions import OperationalError

from ...settings import SettingsError
from ..host_registry import HostValidationError
from .system_tables import get_table_info_message

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class ErrorType(Enum):
    VALIDATION_ERROR = "ValidationError"
    PERMISSION_ERROR = "PermissionError"
    TABLE_NOT_FOUND = "TableNotFound"
    NETWORK_ERROR = "NetworkError"
    QUERY_ERROR = "QueryError"


STATUS_CODES = {
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.PERMISSION_ERROR: 403,
    ErrorType.TABLE_NOT_FOUND: 404,
    ErrorType.NETWORK_ERROR: 503,
    ErrorType.QUERY_ERROR: 500,
}

ERROR_DESCRIPTIONS = {
    ErrorType.VALIDATION_ERROR: 'Invalid request parameters or data format',
    ErrorType.PERMISSION_ERROR: 'Insufficient permissions to access the requested resource',
    ErrorType.TABLE_NOT_FOUND: 'Requested table or resource does not exist',
    ErrorType.NETWORK_ERROR: 'Network connection error or service unavailable',
    ErrorType.QUERY_ERROR: 'Error executing the database query',
}

PERMISSION_KEYWORDS = (
    'not enough privileges',
    'access denied',
    'permission',
    'unauthorized',
    'forbidden',
    'authentication failed',
)

TABLE_MISSING_KEYWORDS = ("doesn't exist", 'does not exist', 'not found')

NETWORK_KEYWORDS = (
    'connection refused',
    'connection reset',
    'timed out',
    'timeout',
    'name or service not known',
    'temporary failure in name resolution',
    'network',
)

VALIDATION_KEYWORDS = ('invalid', 'missing required', 'must be', 'malformed')

NETWORK_EXCEPTIONS = (ConnectionError, TimeoutError, socket.gaierror, OperationalError)

# Exception types that always mean bad caller input or configuration
CLIENT_INPUT_ERRORS = (HostValidationError, SettingsError)

_CLICKHOUSE_CODE = re.compile(r'Code:\s*(\d+)')
_TABLE_NAME = re.compile(r'[Tt]able\s+`?(\w+)`?\.`?(\w+)`?')


class ClassifiedError:
    """Terminal description of a failure, handed to the presentation layer."""

    def __init__(self, error_type: ErrorType, message: str, details: Optional[Dict[str, Any]] = None):
        self.type = error_type
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return status_code_for(self.type)

    @property
    def is_soft(self) -> bool:
        """True for errors the UI should render as information, not failure."""
        return self.type is ErrorType.TABLE_NOT_FOUND

    def to_dict(self):
        return {
            'type': self.type.value,
            'message': self.message,
            'details': dict(self.details),
        }

    def __eq__(self, other):
        if not isinstance(other, ClassifiedError):
            return NotImplemented
        return (self.type, self.message, self.details) == (other.type, other.message, other.details)

    def __repr__(self):
        return f"ClassifiedError(type={self.type.value}, message={self.message!r})"


def status_code_for(error_type: ErrorType) -> int:
    return STATUS_CODES.get(error_type, 500)


def get_error_description(error_type: ErrorType) -> str:
    return ERROR_DESCRIPTIONS.get(error_type, 'Unknown error')


def is_client_error(error_type: ErrorType) -> bool:
    return 400 <= status_code_for(error_type) < 500


def is_server_error(error_type: ErrorType) -> bool:
    return 500 <= status_code_for(error_type) < 600


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def _is_table_missing(text: str) -> bool:
    if 'unknown_table' in text or 'unknown table' in text:
        return True
    return 'table' in text and _contains_any(text, TABLE_MISSING_KEYWORDS)


def _detect_type(error: BaseException, text: str) -> ErrorType:
    if isinstance(error, HostValidationError):
        return ErrorType.VALIDATION_ERROR
    if _contains_any(text, PERMISSION_KEYWORDS):
        return ErrorType.PERMISSION_ERROR
    if _is_table_missing(text):
        return ErrorType.TABLE_NOT_FOUND
    if isinstance(error, NETWORK_EXCEPTIONS) or _contains_any(text, NETWORK_KEYWORDS):
        return ErrorType.NETWORK_ERROR
    if isinstance(error, CLIENT_INPUT_ERRORS) or _contains_any(text, VALIDATION_KEYWORDS):
        return ErrorType.VALIDATION_ERROR
    return ErrorType.QUERY_ERROR


def classify(raw, query_optional: bool = False) -> ClassifiedError:
    """
    Classifies an execution failure.

    Args:
        raw: The raised exception. Anything that is not an exception is
            reported as a generic QueryError.
        query_optional (bool): Whether the failing query was marked optional.

    Returns:
        ClassifiedError
    """
    if not isinstance(raw, BaseException):
        logger.warning(f"Non-exception failure value of type {type(raw).__name__} classified as QueryError")
        return ClassifiedError(
            ErrorType.QUERY_ERROR,
            UNKNOWN_ERROR_MESSAGE,
            {'exception_type': type(raw).__name__, 'query_optional': query_optional},
        )

    message = str(raw) or type(raw).__name__
    error_type = _detect_type(raw, message.lower())

    details: Dict[str, Any] = {
        'exception_type': type(raw).__name__,
        'query_optional': query_optional,
    }
    code = _CLICKHOUSE_CODE.search(message)
    if code:
        details['clickhouse_code'] = int(code.group(1))

    if error_type is ErrorType.TABLE_NOT_FOUND:
        table = _TABLE_NAME.search(message)
        if table:
            full_name = f"{table.group(1)}.{table.group(2)}"
            details['table'] = full_name
            details['guidance'] = get_table_info_message(full_name)

    logger.debug(f"Classified {type(raw).__name__} as {error_type.value}")
    return ClassifiedError(error_type, message, details)
