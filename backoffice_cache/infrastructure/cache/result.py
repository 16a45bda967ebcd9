"""
StoreResult: explicit outcome of a ValueStore operation.

The store never raises for remote failures. It returns the best value it has
(local data, a miss, a local count) together with the remote error, and the
facade decides whether to log and count it.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from backoffice_cache.core.exceptions import CacheError

T = TypeVar("T")


@dataclass
class StoreResult(Generic[T]):
    value: T
    error: CacheError | None = None

    @property
    def degraded(self) -> bool:
        """True when part of the operation (the remote tier) failed."""
        return self.error is not None
