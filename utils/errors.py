"""Error taxonomy shared by the ingestion client, sync orchestrator, catalog cache and API."""


class SyncError(Exception):
    """Profile-local ingestion failure. Isolated per profile in batch runs."""

    def __init__(self, handle: str, message: str) -> None:
        super().__init__(message)
        self.handle = handle
        self.message = message


class InvalidHandle(SyncError):
    """The Codeforces handle does not resolve. Not retried automatically."""

    def __init__(self, handle: str, message: str = "") -> None:
        super().__init__(handle, message or f"Invalid Codeforces handle: {handle}")


class Unavailable(SyncError):
    """Timeout, network error or rate limit on an external call. Retried next cycle."""


class CodeforcesAPIError(Exception):
    """Non-OK Codeforces envelope that is not a rate limit."""

    def __init__(self, method: str, comment: str) -> None:
        super().__init__(f"{method}: {comment}")
        self.method = method
        self.comment = comment


class CatalogUnavailable(Exception):
    """Problemset could not be fetched and no snapshot has ever been cached."""


class NotificationFailure(Exception):
    """Sending a notification failed. Logged by the orchestrator, never propagated."""


class ProfileNotFound(LookupError):
    pass


class DuplicateProfile(ValueError):
    pass
