"""Process-local listener registries."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Listeners(Generic[T]):
    """Ordered set of callbacks invoked synchronously on ``emit``.

    A failing listener is logged and does not stop delivery to the rest.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[[T], Any]] = []

    def subscribe(self, listener: Callable[[T], Any]) -> Callable[[], None]:
        """Register a listener.

        Returns:
            A callable that removes the listener again.
        """
        if listener not in self._listeners:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(f"{self.name} listener error")

    def __len__(self) -> int:
        return len(self._listeners)


@dataclass(frozen=True)
class SyncCompleted:
    """Emitted after every full sync that produced a result."""

    synced_at: datetime
    organization_id: int | None
    event_code: str | None
    result: Any  # FullSyncResult
