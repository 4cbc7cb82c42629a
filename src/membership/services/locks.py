"""
membership/services/locks.py — Per-institution serialization inside one process.

Cross-process safety comes from the SQL side (row locks, conditional
updates); these locks keep concurrent coroutines of one worker from
interleaving their read-check-write steps.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from uuid import UUID


class InstitutionLocks:
    def __init__(self) -> None:
        self._locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    def for_institution(self, institution_id: UUID) -> asyncio.Lock:
        return self._locks[institution_id]

    def clear(self) -> None:
        self._locks.clear()


# Shared by the crew allocator, leveling and activation
institution_locks = InstitutionLocks()
