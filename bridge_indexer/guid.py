"""
Record identifier generation.

Ingestion mints one identifier per deposit and withdrawal row. The generator
is injected into the ingestion engine so that tests can supply deterministic
ids; production uses random UUIDs.
"""

import itertools
import threading
import uuid
from typing import Callable

GUIDFactory = Callable[[], str]


def uuid4_guid() -> str:
    """Default generator: a random RFC 4122 UUID."""
    return str(uuid.uuid4())


class SequentialGUIDFactory:
    """
    Deterministic generator yielding ``<prefix>-000001``, ``<prefix>-000002``...

    Safe to share between tasks and threads.
    """

    def __init__(self, prefix: str = "guid", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            n = next(self._counter)
        return f"{self.prefix}-{n:06d}"
