"""Error kinds raised by the meal logging pipeline."""


class MealLogError(Exception):
    """Base class for pipeline failures surfaced to callers."""

    kind = "internal_error"


class InvalidInputError(MealLogError):
    """A request field is missing or malformed."""

    kind = "invalid_input"


class EstimationUnavailableError(MealLogError):
    """The carbohydrate estimation provider was unreachable or rejected the call."""

    kind = "estimation_unavailable"

    def __init__(self, message: str, *, transient: bool = True) -> None:
        super().__init__(message)
        self.transient = transient


class PersistenceError(MealLogError):
    """The meal store failed to read or write."""

    kind = "persistence_error"


class CorruptRecordError(MealLogError):
    """A stored meal record could not be parsed."""

    kind = "corrupt_record"
