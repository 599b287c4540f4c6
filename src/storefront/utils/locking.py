"""In-process keyed locks around command processing.

Commands that touch several aggregates (an order, its product stock, the
customer's wallet) run inside one Unit of Work, and that Unit of Work commits
only after the handler returns. Two requests racing on the same product would
otherwise both read the same stock level. ``process_serialized`` wraps
``current_domain.process`` so that the whole read-modify-commit cycle holds
one lock per key.

Keys are acquired in sorted order, so callers never deadlock on each other no
matter which order they list them in. The locks are process-local: deployments
running several worker processes must additionally rely on the database (row
locks or optimistic versioning) for cross-process safety.
"""

import threading
from contextlib import contextmanager
from typing import Any, Iterator

from protean.utils.globals import current_domain


class KeyedLock:
    """A registry of re-entrant locks, created on demand and dropped when idle."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, int] = {}

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._holders[key] = self._holders.get(key, 0) + 1
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        ordered = sorted({key for key in keys if key})
        acquired: list[str] = []
        try:
            for key in ordered:
                self._checkout(key).acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_locks = KeyedLock()


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


def wallet_key(user_id: str) -> str:
    return f"wallet:{user_id}"


def coupon_key(code: str) -> str:
    return f"coupon:{code.strip().upper()}"


def serialized(*keys: str):
    """Context manager holding the locks for ``keys`` in sorted order."""
    return _locks.hold(*keys)


def process_serialized(command, *keys: str) -> Any:
    """Process ``command`` synchronously while holding the locks for ``keys``."""
    with _locks.hold(*keys):
        return current_domain.process(command, asynchronous=False)
