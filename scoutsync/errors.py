"""Error types raised by the sync engine."""


class ScoutSyncError(Exception):
    """Base class for all sync engine errors."""


class ScopeError(ScoutSyncError):
    """A pass cannot run because its scope precondition is not met."""


class NoActiveEventError(ScopeError):
    """No event is currently active."""

    def __init__(self, message: str = "No event is currently assigned to your account."):
        super().__init__(message)


class SyncInProgressError(ScoutSyncError):
    """A full sync is already running in this process."""

    def __init__(self, message: str = "A sync is already in progress."):
        super().__init__(message)


class RemoteError(ScoutSyncError):
    """Base class for failures talking to the remote service."""

    retryable = False


class RemoteRejectedError(RemoteError):
    """The remote service answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class RemoteTimeoutError(RemoteError):
    """A request exceeded its deadline."""

    retryable = True


class RemoteUnavailableError(RemoteError):
    """The remote service could not be reached."""

    retryable = True
