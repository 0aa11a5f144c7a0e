"""Named locks guarding stock read-decide-write sequences."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Protocol

from src.common.exceptions.custom_exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

CATALOG_LOCK_KEY = "catalog:titles"


class LockBackend(Protocol):
    """
    Minimal interface a store must offer to be used with `lock`.

    The MySQL repository maps it onto GET_LOCK/RELEASE_LOCK, the in-memory
    repository onto per-key threading locks.
    """

    def acquire(self, key: str, timeout: float | None) -> bool: ...
    def release(self, key: str) -> None: ...


def stock_lock_key(product_id: object) -> str:
    """Lock key scoping every stock guard for one product."""
    return f"stock:{product_id}"


@contextmanager
def lock(keys: str | Iterable[str], backend: LockBackend, timeout: float | None = 3.0) -> Iterator[None]:
    """
    Hold every lock in `keys` for the duration of the block.

    Keys are de-duplicated and taken in sorted order so two callers locking
    the same pair of products cannot deadlock each other. Locks that were
    acquired are always released, in reverse order, even when the block or a
    later acquisition fails.

    Raises
    ------
    ConcurrencyConflictError
        If any key cannot be acquired within `timeout` seconds.
    """
    if isinstance(keys, str):
        keys = [keys]
    ordered = sorted(set(keys))

    held: list[str] = []
    try:
        for key in ordered:
            if not backend.acquire(key, timeout):
                logger.warning(f"Timed out waiting for lock '{key}' after {timeout}s")
                raise ConcurrencyConflictError(
                    f"Failed to acquire lock for key='{key}' within timeout={timeout}s"
                )
            held.append(key)
        yield
    finally:
        for key in reversed(held):
            backend.release(key)
