"""Identifier generation for transactions, receipts and purchase requests.

An id generator is any callable taking a prefix and returning a unique
id. The default is random (uuid4); SequentialIds gives deterministic,
monotonic ids for tests and replayable runs.
"""

from __future__ import annotations

import itertools
import threading
from typing import Callable
from uuid import uuid4


IdGenerator = Callable[[str], str]


def random_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class SequentialIds:
    """Monotonic per-process counter: ``txn_000001``, ``rct_000002``, ..."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self, prefix: str) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{prefix}_{value:06d}"
