"""
Invalidation Exceptions
"""

from backoffice_cache.core.exceptions.base import BackofficeCacheError


class InvalidationPartialFailure(BackofficeCacheError):
    """
    One or more patterns of a domain invalidation could not be applied.

    Never raised by DomainInvalidator itself; it is recorded in the
    InvalidationReport failures and can be raised by callers that need a
    strict write path (``report.raise_for_failures()``).
    """

    def __init__(self, message: str, failures: list[dict] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.failures = list(failures or [])
        self.details.setdefault("failures", self.failures)
