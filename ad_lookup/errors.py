"""
Directory Lookup Error Taxonomy

Exceptions raised by the search, normalization and account-action layers.
Every error keeps the original message from the directory so operators can
diagnose failures without digging through logs.
"""

from typing import Dict, Optional


class DirectoryLookupError(Exception):
    """Base exception for directory lookup operations"""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class ConfigurationError(DirectoryLookupError):
    """Raised when a configured domain is missing connection settings"""

    def __init__(self, message: str):
        super().__init__(message, error_code="CONFIGURATION")


class InvalidQuery(DirectoryLookupError):
    """Raised when caller input fails a precondition (short term, empty filter set)"""

    def __init__(self, message: str):
        super().__init__(message, error_code="INVALID_QUERY")


class UnknownDomain(DirectoryLookupError):
    """Raised when the requested domain has no configured client"""

    def __init__(self, domain: str):
        super().__init__(f"Invalid domain: {domain}", error_code="UNKNOWN_DOMAIN")
        self.domain = domain


class SearchTimeout(DirectoryLookupError):
    """Raised when a single query attempt exceeds its time budget"""

    def __init__(self, domain: str, tier: str, timeout: float):
        message = f"{tier.capitalize()} search on {domain} timed out after {timeout:g}s"
        super().__init__(message, error_code="SEARCH_TIMEOUT")
        self.domain = domain
        self.tier = tier
        self.timeout = timeout


class SearchFailed(DirectoryLookupError):
    """
    Raised when the directory reports an error for a query.

    For multi-domain searches where every domain failed, ``domain_errors``
    holds the individual failure per domain key.
    """

    def __init__(self, message: str, domain_errors: Optional[Dict[str, Exception]] = None):
        super().__init__(message, error_code="SEARCH_FAILED")
        self.domain_errors = domain_errors or {}


class MalformedTimestamp(DirectoryLookupError):
    """Raised when a raw timestamp attribute cannot be parsed"""

    def __init__(self, value, reason: str = "not a valid integer timestamp"):
        super().__init__(f"Malformed timestamp {value!r}: {reason}", error_code="MALFORMED_TIMESTAMP")
        self.value = value


class NotFound(DirectoryLookupError):
    """Raised when a single-user lookup matched nothing"""

    def __init__(self, account_id: str, domain: str):
        super().__init__(f"User not found: {account_id} ({domain})", error_code="NOT_FOUND")
        self.account_id = account_id
        self.domain = domain


class MutationFailed(DirectoryLookupError):
    """Raised when the directory rejects an unlock, password reset or expiration update"""

    def __init__(self, account_id: str, operation: str, message: str):
        super().__init__(f"{operation} failed for {account_id}: {message}", error_code="MUTATION_FAILED")
        self.account_id = account_id
        self.operation = operation


class DirectoryClientError(DirectoryLookupError):
    """Raised by a domain client when the directory returns a non-success result"""

    def __init__(self, message: str, result_code: Optional[int] = None):
        super().__init__(message, error_code="DIRECTORY_ERROR")
        self.result_code = result_code
