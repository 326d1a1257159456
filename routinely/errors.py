"""Error types."""


class RoutinelyError(Exception):
    """Base class for all routinely errors."""


class ValidationError(RoutinelyError, ValueError):
    """Input rejected before any state was touched."""


class RegistrationError(RoutinelyError):
    """The alarm timer refused or failed to register one alarm."""

    def __init__(self, alarm_id: str, reason: str):
        super().__init__(f"Could not register alarm {alarm_id}: {reason}")
        self.alarm_id = alarm_id
        self.reason = reason


class NotFoundError(RoutinelyError, LookupError):
    """A referenced routine or schedule does not exist."""


class DecodeError(RoutinelyError, ValueError):
    """An alarm id is not a well-formed routine alarm id."""
