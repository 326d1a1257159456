"""Parsing of routine definitions, times and day sets from chat commands."""

from routinely.db.models import Duration, Routine, Step, TimeOfDay, Weekday
from routinely.errors import ValidationError
from routinely.parser.patterns import (
    BARE_MINUTES_PATTERN,
    DAY_SEPARATOR,
    DAY_SET_KEYWORDS,
    DURATION_PATTERN,
    STEP_PATTERN,
    STEP_SEPARATOR,
    TIME_PATTERNS,
    WEEKDAY_NAMES,
)


def parse_duration(text: str) -> Duration:
    """Parse "5m", "1h30m", "1 hour", "90" (minutes)."""
    text = text.strip()
    if BARE_MINUTES_PATTERN.match(text):
        return Duration(int(text))

    match = DURATION_PATTERN.match(text)
    if not text or not match or not (match.group('hours') or match.group('minutes')):
        raise ValidationError(f"Invalid duration: {text!r}")

    return Duration.from_hours_minutes(
        int(match.group('hours') or 0), int(match.group('minutes') or 0)
    )


def parse_time(text: str) -> TimeOfDay:
    """Parse "07:00", "7:30pm" or "7am"."""
    text = text.strip()

    for pattern in TIME_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue

        groups = match.groups()
        hour = int(groups[0])
        minute = int(groups[1]) if len(groups) == 3 else 0
        meridiem = (groups[-1] or "").lower()

        if meridiem:
            if not 1 <= hour <= 12:
                raise ValidationError(f"Invalid time: {text!r}")
            hour = hour % 12 + (12 if meridiem == "pm" else 0)

        try:
            return TimeOfDay(hour, minute)
        except ValueError:
            raise ValidationError(f"Invalid time: {text!r}") from None

    raise ValidationError(f"Invalid time: {text!r} (use HH:MM, e.g. 07:30)")


def parse_days(text: str) -> frozenset[Weekday]:
    """Parse a day set. Empty text or "once" means a one-time run.

    Examples:
        "mon,wed,fri" -> {MONDAY, WEDNESDAY, FRIDAY}
        "weekdays" -> MONDAY..FRIDAY
        "every day" -> all seven days
    """
    text = text.strip().lower().replace("every day", "everyday")
    if not text:
        return frozenset()

    days: set[Weekday] = set()
    for token in DAY_SEPARATOR.split(text):
        if not token:
            continue
        if token in DAY_SET_KEYWORDS:
            days |= DAY_SET_KEYWORDS[token]
        elif token in WEEKDAY_NAMES:
            days.add(WEEKDAY_NAMES[token])
        else:
            raise ValidationError(f"Unknown day: {token!r}")

    return frozenset(days)


def parse_steps(text: str) -> list[Step]:
    """Parse "Warm-up 5m, Run 20m, Cooldown 5m" into steps."""
    steps = []
    for chunk in STEP_SEPARATOR.split(text.strip()):
        if not chunk:
            continue
        match = STEP_PATTERN.match(chunk)
        if not match:
            raise ValidationError(
                f"Could not read step {chunk!r} (expected a name then a duration, e.g. 'Run 20m')"
            )
        steps.append(Step.create(match.group('name').strip(), parse_duration(match.group('duration'))))

    if not steps:
        raise ValidationError("Routine needs at least one step")
    return steps


def parse_routine_definition(text: str) -> tuple[str, list[Step]]:
    """Parse "Name: Step 5m, Step 20m" into a name and its steps."""
    name, separator, steps_text = text.partition(":")
    if not separator or not name.strip():
        raise ValidationError("Expected 'Name: Step 5m, Step 20m'")
    return name.strip(), parse_steps(steps_text)


def parse_routine(text: str) -> Routine:
    """Build a new Routine from a definition string."""
    name, steps = parse_routine_definition(text)
    return Routine.create(name, steps)
