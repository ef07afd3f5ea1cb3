"""Journal stores: in-memory and SQLAlchemy implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .memory import InMemoryJournalStore

if TYPE_CHECKING:
    from tradebook_journal.core.config import Settings
    from tradebook_journal.core.interfaces import IJournalStore


def create_store(settings: "Settings") -> "IJournalStore":
    """Build the store selected by settings."""
    if settings.use_memory_store:
        return InMemoryJournalStore()

    from .postgres.connection import create_engine
    from .postgres.repos import SqlJournalStore

    return SqlJournalStore(create_engine(settings.database_url))


__all__ = ["InMemoryJournalStore", "create_store"]
