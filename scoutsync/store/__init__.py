"""Local persistence for ScoutSync.

Provides the embedded SQLite database holding:
- Mirrored remote collections (teams, events, schedules, markers, ...)
- Locally originated outbox records awaiting delivery
- The active (organization, event) context row
"""

from .local_store import LocalStore
from .schema import OUTBOX_TABLES

__all__ = ["LocalStore", "OUTBOX_TABLES"]
