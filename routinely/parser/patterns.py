"""Regex patterns for command parsing."""

import re

from routinely.db.models import Weekday
from routinely.utils.constants import ALL_DAYS, WEEKDAYS, WEEKENDS

# Durations: "5m", "20 min", "1h", "1h30m", "1 hour 15 minutes", or bare minutes "90"
DURATION_PATTERN = re.compile(
    r'^(?:(?P<hours>\d+)\s*h(?:ours?|rs?)?)?\s*'
    r'(?:(?P<minutes>\d+)\s*m(?:in(?:ute)?s?)?)?$',
    re.IGNORECASE,
)
BARE_MINUTES_PATTERN = re.compile(r'^\d+$')

# A step is "<name> <duration>", optionally with a dash before the duration
STEP_PATTERN = re.compile(
    r'^(?P<name>.+?)\s*[-–—:]?\s+(?P<duration>'
    r'\d+\s*h(?:ours?|rs?)?(?:\s*\d+\s*m(?:in(?:ute)?s?)?)?'
    r'|\d+\s*m(?:in(?:ute)?s?)?'
    r'|\d+)$',
    re.IGNORECASE,
)

# Times: "07:00", "7:30pm", "7am", "19:30"
TIME_PATTERNS = [
    re.compile(r'^(\d{1,2}):(\d{2})\s*(am|pm)?$', re.IGNORECASE),
    re.compile(r'^(\d{1,2})\s*(am|pm)$', re.IGNORECASE),
]

# Step list separators inside a routine definition
STEP_SEPARATOR = re.compile(r'\s*[,;\n]\s*')

# Day list separators: "mon,wed", "mon wed", "mon/wed"
DAY_SEPARATOR = re.compile(r'[\s,/]+')

# Weekday names and abbreviations
WEEKDAY_NAMES = {
    'monday': Weekday.MONDAY, 'mon': Weekday.MONDAY, 'mo': Weekday.MONDAY,
    'tuesday': Weekday.TUESDAY, 'tue': Weekday.TUESDAY, 'tues': Weekday.TUESDAY, 'tu': Weekday.TUESDAY,
    'wednesday': Weekday.WEDNESDAY, 'wed': Weekday.WEDNESDAY, 'we': Weekday.WEDNESDAY,
    'thursday': Weekday.THURSDAY, 'thu': Weekday.THURSDAY, 'thur': Weekday.THURSDAY,
    'thurs': Weekday.THURSDAY, 'th': Weekday.THURSDAY,
    'friday': Weekday.FRIDAY, 'fri': Weekday.FRIDAY, 'fr': Weekday.FRIDAY,
    'saturday': Weekday.SATURDAY, 'sat': Weekday.SATURDAY, 'sa': Weekday.SATURDAY,
    'sunday': Weekday.SUNDAY, 'sun': Weekday.SUNDAY, 'su': Weekday.SUNDAY,
}

# Named day sets
DAY_SET_KEYWORDS = {
    'daily': ALL_DAYS,
    'everyday': ALL_DAYS,
    'weekdays': WEEKDAYS,
    'weekends': WEEKENDS,
    'once': frozenset(),
}
