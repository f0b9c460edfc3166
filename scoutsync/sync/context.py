"""Registry for the active organization and event."""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..errors import NoActiveEventError
from ..models import Scope
from ..normalize import to_int, to_string
from ..store import LocalStore
from .events import Listeners

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveContext:
    organization_id: int | None = None
    event_code: str | None = None

    @property
    def scope(self) -> Scope:
        return Scope(event_code=self.event_code, organization_id=self.organization_id)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class ActiveContextRegistry:
    """Persisted singleton holding the active (organization, event) pair.

    The value is read from the store once and cached; every write goes to
    the store first and then replaces the cache. Subscribers are notified
    synchronously, in subscription order, whenever the value changes.
    """

    def __init__(self, store: LocalStore):
        self._store = store
        self._cached: ActiveContext | None = None
        self._listeners: Listeners[ActiveContext] = Listeners("active-context")

    def get_active(self) -> ActiveContext:
        if self._cached is None:
            organization_id, event_code = self._store.load_active_context()
            self._cached = ActiveContext(organization_id, event_code)
        return self._cached

    def set_active(
        self,
        organization_id: int | None = UNSET,
        event_code: str | None = UNSET,
    ) -> ActiveContext:
        """Persist a new active context.

        Args:
            organization_id: New organization, None to clear, omit to keep.
            event_code: New event code, None to clear, omit to keep.

        Returns:
            The context now in effect.
        """
        current = self.get_active()

        updated = ActiveContext(
            organization_id=(
                current.organization_id
                if organization_id is UNSET
                else to_int(organization_id)
            ),
            event_code=current.event_code if event_code is UNSET else to_string(event_code),
        )

        if updated == current:
            return current

        self._store.save_active_context(updated.organization_id, updated.event_code)
        self._cached = updated

        logger.info(
            f"Active context changed: organization={updated.organization_id}, "
            f"event={updated.event_code}"
        )
        self._listeners.emit(updated)
        return updated

    def clear(self) -> None:
        """Forget the active context entirely."""
        current = self.get_active()
        self._store.delete_active_context()
        self._cached = ActiveContext()

        if current != self._cached:
            self._listeners.emit(self._cached)

    def invalidate(self) -> None:
        """Drop the cached value so the next read goes to the store."""
        self._cached = None

    def require_event(self) -> str:
        """Return the active event code.

        Raises:
            NoActiveEventError: If no event is active.
        """
        event_code = self.get_active().event_code
        if not event_code:
            raise NoActiveEventError()
        return event_code

    def require_scope(self) -> Scope:
        """Return the active scope, failing fast when no event is active."""
        self.require_event()
        return self.get_active().scope

    def subscribe(self, listener: Callable[[ActiveContext], Any]) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        return self._listeners.subscribe(listener)
