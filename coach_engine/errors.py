"""Error types raised at the persistence boundary.

Evaluators never raise on missing data; only saves and record edits do.
"""

from typing import Optional


class SaveRefusedError(Exception):
    """Base exception for saves the engine refuses to perform."""

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        self.message = message or reason
        super().__init__(self.message)


class DistanceMismatchError(SaveRefusedError):
    """Raised when a swim's summed step distance differs from the requested total."""

    def __init__(self, target_meters: int, actual_meters: Optional[int]):
        self.target_meters = target_meters
        self.actual_meters = actual_meters
        super().__init__(
            "distance_mismatch",
            f"Swim steps total {actual_meters}m but {target_meters}m was requested",
        )


class StorageError(SaveRefusedError):
    """Raised when the database write fails; the session has been rolled back."""

    def __init__(self, message: str):
        super().__init__("storage_error", message)


class CheckInLockedError(Exception):
    """Raised when derived fields of a locked check-in would change."""

    def __init__(self, check_in_id: int):
        self.check_in_id = check_in_id
        super().__init__(f"Check-in {check_in_id} is locked")


class AthleteNotFoundError(LookupError):
    """Raised when no profile is stored for an athlete id."""

    def __init__(self, athlete_id: str):
        self.athlete_id = athlete_id
        super().__init__(f"Athlete {athlete_id} not found")
