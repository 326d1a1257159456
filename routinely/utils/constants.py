"""Constants and default values."""

from routinely.db.models import Weekday

# Alarm id scheme: routine_{instance_id}_step_{step_index}_{weekday|onetime}
ROUTINE_ALARM_PREFIX = "routine_"
ROUTINE_STEP_SEPARATOR = "_step_"
ONE_TIME_TOKEN = "onetime"

# Plain alarms: alarm_{alarm_id}_{weekday|onetime}; test alarms: test_{uuid}
STANDALONE_ALARM_PREFIX = "alarm_"
TEST_ALARM_PREFIX = "test_"
TEST_ALARM_DELAY_SECONDS = 2

# Named day sets accepted by the schedule parser
WEEKDAYS = frozenset(
    {Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY}
)
WEEKENDS = frozenset({Weekday.SATURDAY, Weekday.SUNDAY})
ALL_DAYS = frozenset(Weekday)

# Limits
MAX_STEPS_PER_ROUTINE = 50
MAX_NAME_LENGTH = 100
MAX_STEP_MINUTES = 24 * 60
# A whole routine must end before the same weekday comes round again
MAX_ROUTINE_MINUTES = 7 * 24 * 60

# Default timezone
DEFAULT_TIMEZONE = "UTC"

# Settings keys
OWNER_CHAT_KEY = "owner_chat_id"
