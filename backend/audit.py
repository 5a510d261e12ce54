# Audit log - append-only, newest first, for ledger movements and access decisions
from __future__ import annotations

from datetime import datetime, timezone
from itertools import count
from typing import List, Optional

import structlog

from models import LogEntry

logger = structlog.get_logger(__name__)

LOG_TYPES = ("earned", "spent", "denied", "info")


class AuditLog:
    """
    Session audit trail. Each append inserts at the head; entries are never
    edited or removed.
    """

    def __init__(self):
        self._entries: List[LogEntry] = []
        self._ids = count(1)

    def append(self, type: str, message: str, credits: Optional[int] = None) -> LogEntry:
        """Record an event and return the new entry."""
        if type not in LOG_TYPES:
            raise ValueError(f"Unknown log entry type: {type!r}")
        entry = LogEntry(
            id=f"log-{next(self._ids)}",
            timestamp=datetime.now(timezone.utc).isoformat(),
            type=type,
            message=message,
            credits=credits,
        )
        self._entries.insert(0, entry)
        logger.info("audit_entry", entry_id=entry.id, entry_type=type, message=message, credits=credits)
        return entry

    def entries(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Entries most recent first, optionally capped at `limit`."""
        if limit is None:
            return list(self._entries)
        return self._entries[:max(0, limit)]

    def latest(self) -> Optional[LogEntry]:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)
