"""Sync orchestration: assignments, pull passes, push passes, reporting."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from ..config import SyncConfig
from ..errors import NoActiveEventError, RemoteError, SyncInProgressError
from ..models import Scope
from ..normalize import extract_event_code, extract_organization_id, to_int, year_from_event_key
from ..remote import ScoutingApi
from ..store import LocalStore
from .collections import CollectionSync
from .context import ActiveContext, ActiveContextRegistry
from .events import Listeners, SyncCompleted
from .outbox import CHANNELS, DispatchResult, OutboxChannel, OutboxDispatcher
from .reconciler import ReconcileCounts

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    """Status of a full sync."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Some passes failed or rows stayed pending
    FAILED = "failed"  # No pull pass completed and nothing was delivered


@dataclass
class AssignmentRefresh:
    organization_id: int | None
    event_code: str | None
    organization_changed: bool = False
    event_changed: bool = False

    @property
    def changed(self) -> bool:
        return self.organization_changed or self.event_changed


@dataclass
class PullReport:
    """Counts of every completed pull pass, in execution order."""

    passes: dict[str, ReconcileCounts] = field(default_factory=dict)
    failed_pass: str | None = None
    error: str | None = None
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed(self) -> int:
        return sum(counts.changed for counts in self.passes.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "passes": {name: counts.to_dict() for name, counts in self.passes.items()},
            "failed_pass": self.failed_pass,
            "error": self.error,
            "skipped": list(self.skipped),
        }


@dataclass
class PushReport:
    """Dispatch results per outbox channel."""

    channels: dict[str, DispatchResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def sent(self) -> int:
        return sum(result.sent for result in self.channels.values())

    @property
    def still_pending(self) -> int:
        return sum(result.still_pending for result in self.channels.values())

    @property
    def discarded(self) -> int:
        return sum(result.discarded for result in self.channels.values())

    @property
    def ok(self) -> bool:
        return not self.errors and self.still_pending == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "channels": {name: result.to_dict() for name, result in self.channels.items()},
            "errors": dict(self.errors),
            "sent": self.sent,
            "still_pending": self.still_pending,
            "discarded": self.discarded,
        }


@dataclass
class FullSyncResult:
    """Result of a full sync."""

    status: SyncStatus
    context: ActiveContext
    event_changed: bool = False
    organization_changed: bool = False
    pull: PullReport = field(default_factory=PullReport)
    push: PushReport = field(default_factory=PushReport)
    errors: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "organization_id": self.context.organization_id,
            "event_code": self.context.event_code,
            "event_changed": self.event_changed,
            "organization_changed": self.organization_changed,
            "pull": self.pull.to_dict(),
            "push": self.push.to_dict(),
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class SyncOrchestrator:
    """Sequences a full sync of the local store against the remote.

    A full sync refreshes the active context from the user's remote
    assignment, runs the pull passes for the resolved scope and then the
    push passes for every outbox channel. Pull passes are fail-fast; push
    passes are isolated from each other. Each pass commits on its own, so
    progress made before a failure is kept.
    """

    def __init__(
        self,
        store: LocalStore,
        api: ScoutingApi,
        registry: ActiveContextRegistry | None = None,
        config: SyncConfig | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Local store.
            api: Remote endpoint gateway.
            registry: Active-context registry; one is created when omitted.
            config: Sync settings; defaults apply when omitted.
        """
        self.store = store
        self.api = api
        self.registry = registry or ActiveContextRegistry(store)
        self.config = config or SyncConfig()
        self.collections = CollectionSync(
            store, api, max_team_pages=self.config.max_team_pages
        )
        self.dispatcher = OutboxDispatcher(store, api)
        self._completed: Listeners[SyncCompleted] = Listeners("sync-completed")
        self._syncing = False
        self._last_result: FullSyncResult | None = None

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def last_result(self) -> FullSyncResult | None:
        return self._last_result

    def subscribe_sync_completed(
        self, listener: Callable[[SyncCompleted], Any]
    ) -> Callable[[], None]:
        """Register a listener for finished full syncs."""
        return self._completed.subscribe(listener)

    # ==================== Active context ====================

    async def refresh_assignments(self) -> AssignmentRefresh:
        """Read the user's assigned organization and event from the remote.

        The assignment is authoritative: an unassigned value clears the
        local one.

        Returns:
            AssignmentRefresh describing what changed.
        """
        previous = self.registry.get_active()

        organization_id = extract_organization_id(await self.api.get_user_organization())
        event_code = extract_event_code(await self.api.get_user_event())

        current = self.registry.set_active(
            organization_id=organization_id, event_code=event_code
        )

        refresh = AssignmentRefresh(
            organization_id=current.organization_id,
            event_code=current.event_code,
            organization_changed=current.organization_id != previous.organization_id,
            event_changed=current.event_code != previous.event_code,
        )

        if refresh.changed:
            logger.info(
                f"Assignment changed: organization {previous.organization_id} -> "
                f"{current.organization_id}, event {previous.event_code} -> {current.event_code}"
            )
        return refresh

    async def select_organization(self, user_organization_id: int) -> ActiveContext:
        """Change the user's selected organization remotely, then locally.

        Args:
            user_organization_id: Membership id of the organization to select.

        Returns:
            The active context after the change.
        """
        response = await self.api.update_organization_selection(user_organization_id)

        organization_id = extract_organization_id(response)
        if organization_id is None:
            memberships = self.store.select(
                "user_organization", {"user_organization_id": to_int(user_organization_id)}
            )
            if memberships:
                organization_id = memberships[0]["organization_id"]

        if organization_id is None:
            logger.warning(
                f"Selection of membership {user_organization_id} did not name an organization"
            )
            return self.registry.get_active()

        return self.registry.set_active(organization_id=organization_id)

    # ==================== Passes ====================

    def _events_year(self, scope: Scope) -> int:
        if self.config.events_year:
            return self.config.events_year
        if scope.event_code:
            year = year_from_event_key(scope.event_code)
            if year:
                return year
        return datetime.now().year

    def _pull_passes(self, scope: Scope, full: bool) -> list[tuple[str, Callable[[], Any]]]:
        collections = self.collections
        passes: list[tuple[str, Callable[[], Any]]] = [
            ("organizations", collections.pull_organizations),
            ("super_scout_fields", collections.pull_super_scout_fields),
        ]

        if full or self.config.always_refresh_general_data:
            year = self._events_year(scope)
            passes.append(("teams", collections.pull_teams))
            passes.append(("events", lambda: collections.pull_events(year)))

        passes.append(("match_schedule", lambda: collections.pull_match_schedule(scope)))
        passes.append(("team_events", lambda: collections.pull_team_events(scope)))

        if scope.organization_id is not None:
            passes.append(("already_scouted", lambda: collections.pull_already_scouted(scope)))
            passes.append(
                ("already_pit_scouted", lambda: collections.pull_already_pit_scouted(scope))
            )
            passes.append(("pick_lists", lambda: collections.pull_pick_lists(scope)))

        passes.append(("already_prescouted", lambda: collections.pull_already_prescouted(scope)))
        passes.append(
            ("already_super_scouted", lambda: collections.pull_already_super_scouted(scope))
        )
        passes.append(
            ("already_robot_photos", lambda: collections.pull_already_robot_photos(scope))
        )
        return passes

    async def reconcile_scope(self, scope: Scope, full: bool = False) -> PullReport:
        """Run every pull pass for a scope, stopping at the first failure.

        Args:
            scope: Scope to reconcile.
            full: Also refresh the general team and event lists.

        Returns:
            PullReport with the counts of every completed pass.

        Raises:
            NoActiveEventError: If the scope has no event.
        """
        if not scope.event_code:
            raise NoActiveEventError()

        report = PullReport()
        passes = self._pull_passes(scope, full)

        for index, (name, run) in enumerate(passes):
            try:
                counts = await run()
            except Exception as e:
                logger.error(f"Pull pass {name} failed: {e}")
                report.failed_pass = name
                report.error = str(e)
                report.skipped = [skipped for skipped, _ in passes[index + 1:]]
                break

            if isinstance(counts, dict):
                report.passes.update(counts)
            else:
                report.passes[name] = counts

        return report

    async def dispatch_pending(
        self,
        scope: Scope,
        channels: tuple[OutboxChannel, ...] = CHANNELS,
    ) -> PushReport:
        """Dispatch every outbox channel for the scope's event.

        A channel that raises is recorded and the remaining channels still run.

        Raises:
            NoActiveEventError: If the scope has no event.
        """
        if not scope.event_code:
            raise NoActiveEventError()

        report = PushReport()

        for channel in channels:
            try:
                report.channels[channel.name] = await self.dispatcher.dispatch(scope, channel)
            except Exception as e:
                logger.error(f"Push pass {channel.name} failed: {e}")
                report.errors[channel.name] = str(e)

        return report

    # ==================== Full sync ====================

    async def run_full_sync(self) -> FullSyncResult:
        """Refresh the assignment, pull the active scope, push pending rows.

        Returns:
            FullSyncResult with per-pass counts and an overall status.

        Raises:
            SyncInProgressError: If another full sync is running.
            NoActiveEventError: If no event is assigned after the refresh.
        """
        if self._syncing:
            raise SyncInProgressError()

        self._syncing = True
        try:
            result = await self._run_full_sync()
        finally:
            self._syncing = False

        self._last_result = result
        self._completed.emit(
            SyncCompleted(
                synced_at=result.finished_at or datetime.now(),
                organization_id=result.context.organization_id,
                event_code=result.context.event_code,
                result=result,
            )
        )
        return result

    async def _run_full_sync(self) -> FullSyncResult:
        started_at = datetime.now()
        errors: list[str] = []
        refresh: AssignmentRefresh | None = None

        try:
            refresh = await self.refresh_assignments()
        except RemoteError as e:
            logger.warning(f"Could not refresh assignment, using stored context: {e}")
            errors.append(f"assignments: {e}")

        context = self.registry.get_active()
        if not context.event_code:
            raise NoActiveEventError()

        full = refresh is not None and refresh.changed
        pull = await self.reconcile_scope(context.scope, full=full)
        if pull.error:
            errors.append(f"pull {pull.failed_pass}: {pull.error}")

        push = await self.dispatch_pending(context.scope)
        for name, error in push.errors.items():
            errors.append(f"push {name}: {error}")
        for name, dispatched in push.channels.items():
            for failure in dispatched.failures:
                errors.append(f"push {name} {failure.key}: {failure.error}")

        result = FullSyncResult(
            status=self._status_of(pull, push, errors),
            context=context,
            event_changed=refresh.event_changed if refresh else False,
            organization_changed=refresh.organization_changed if refresh else False,
            pull=pull,
            push=push,
            errors=errors,
            started_at=started_at,
            finished_at=datetime.now(),
        )

        logger.info(
            f"Sync: {result.status.value}, pulled={len(pull.passes)} passes "
            f"({pull.changed} changes), pushed={push.sent}, still_pending={push.still_pending}"
        )
        return result

    @staticmethod
    def _status_of(pull: PullReport, push: PushReport, errors: list[str]) -> SyncStatus:
        if not errors and push.still_pending == 0:
            return SyncStatus.SUCCESS
        if not pull.passes and push.sent == 0 and push.discarded == 0:
            return SyncStatus.FAILED
        return SyncStatus.PARTIAL

    def get_sync_status(self) -> dict[str, Any]:
        """Get current sync status.

        Returns:
            Dictionary with the active context, pending counts and last result.
        """
        context = self.registry.get_active()
        last = self._last_result

        return {
            "organization_id": context.organization_id,
            "event_code": context.event_code,
            "syncing": self._syncing,
            "pending": self.store.count_pending(context.event_code),
            "last_sync": last.finished_at.isoformat() if last and last.finished_at else None,
            "last_status": last.status.value if last else None,
        }
