"""Remote access to the authoritative scouting service."""

from .api import ScoutingApi
from .client import RemoteClient

__all__ = ["RemoteClient", "ScoutingApi"]
