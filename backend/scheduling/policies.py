"""Named scheduling rules.

Each rule is a plain function over plain values (instants, wall-clock
intervals, counts) so it can be tested without a database. The services in
`scheduling.services` load rows and feed them through these functions.

All arithmetic is done on timezone-aware instants. Wall-clock fields (a
teacher's working hours) are always paired with the IANA zone they are
expressed in and turned into instants before being compared.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from academics.models import WEEKDAYS

# Availability reasons
TEACHER_INACTIVE = 'TeacherInactive'
NOT_WORKING_DAY = 'NotWorkingDay'
OUTSIDE_WORKING_HOURS = 'OutsideWorkingHours'
ON_BREAK = 'OnBreak'
OVERLAP = 'Overlap'
DAILY_LIMIT_REACHED = 'DailyLimitReached'

# Entitlement reasons
NO_ACTIVE_PACKAGE = 'NoActivePackage'
PACKAGE_EXPIRED = 'PackageExpired'
NO_CREDITS_REMAINING = 'NoCreditsRemaining'
NO_RESCHEDULES_REMAINING = 'NoReschedulesRemaining'

# Notice reasons
CLASS_STARTS_SOON = 'ClassStartsSoon'
NEW_SLOT_TOO_SOON = 'NewSlotTooSoon'


@dataclass(frozen=True)
class Window:
    """A half-open span of absolute time ``[start, end)``."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start is None or self.end is None:
            raise ValueError('window start and end are required')
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError('window bounds must be timezone-aware instants')
        if self.end <= self.start:
            raise ValueError('window must have a positive duration')

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: 'Window') -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def in_zone(self, tz_name: str) -> Tuple[datetime, datetime]:
        zone = ZoneInfo(tz_name)
        return self.start.astimezone(zone), self.end.astimezone(zone)


@dataclass(frozen=True)
class TeacherCalendar:
    """Snapshot of a teacher's weekly availability, in the teacher's zone."""
    timezone: str
    working_days: Tuple[str, ...]
    work_hours: dict = field(default_factory=dict)
    break_hours: dict = field(default_factory=dict)
    max_per_day: int = 8
    active: bool = True

    @classmethod
    def from_teacher(cls, teacher) -> 'TeacherCalendar':
        return cls(
            timezone=teacher.timezone,
            working_days=tuple(teacher.working_days or ()),
            work_hours={day: tuple(teacher.intervals_for(day, 'work_hours')) for day in WEEKDAYS},
            break_hours={day: tuple(teacher.intervals_for(day, 'break_hours')) for day in WEEKDAYS},
            max_per_day=teacher.max_students_per_day,
            active=teacher.active,
        )

    def local_day_bounds(self, day: date) -> Window:
        zone = ZoneInfo(self.timezone)
        start = datetime.combine(day, time.min, tzinfo=zone)
        return Window(start, datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone))

    def intervals_on(self, day: date, which: str = 'work_hours') -> List[Window]:
        """Turn the wall-clock intervals for `day` into absolute windows."""
        zone = ZoneInfo(self.timezone)
        weekday = WEEKDAYS[day.weekday()]
        out = []
        for start, end in getattr(self, which).get(weekday, ()):
            out.append(Window(
                datetime.combine(day, start, tzinfo=zone),
                datetime.combine(day, end, tzinfo=zone),
            ))
        return out


@dataclass
class AvailabilityResult:
    available: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.available


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Two intervals overlap iff start1 < end2 and start2 < end1."""
    return start1 < end2 and start2 < end1


def local_day(calendar: TeacherCalendar, window: Window) -> Optional[date]:
    """Return the teacher-local date of `window`, or None if it spans two days."""
    local_start, local_end = window.in_zone(calendar.timezone)
    last_instant = local_end - timedelta(microseconds=1)
    if local_start.date() != last_instant.date():
        return None
    return local_start.date()


def is_working_day(calendar: TeacherCalendar, window: Window) -> bool:
    day = local_day(calendar, window)
    if day is None:
        return False
    return weekday_name(day) in calendar.working_days


def within_working_hours(calendar: TeacherCalendar, window: Window) -> bool:
    day = local_day(calendar, window)
    if day is None:
        return False
    return any(w.start <= window.start and window.end <= w.end for w in calendar.intervals_on(day, 'work_hours'))


def clear_of_breaks(calendar: TeacherCalendar, window: Window) -> bool:
    day = local_day(calendar, window)
    if day is None:
        return False
    return not any(window.overlaps(b) for b in calendar.intervals_on(day, 'break_hours'))


def clear_of_bookings(window: Window, bookings: Iterable[Window]) -> bool:
    return not any(window.overlaps(b) for b in bookings)


def under_daily_cap(calendar: TeacherCalendar, classes_that_day: int) -> bool:
    """Adding one more class must keep the day at or under the cap."""
    return classes_that_day + 1 <= calendar.max_per_day


def evaluate_availability(
    calendar: TeacherCalendar,
    window: Window,
    bookings: Sequence[Window],
    classes_that_day: int,
) -> AvailabilityResult:
    """Apply every availability rule in order; first failure wins."""
    if not calendar.active:
        return AvailabilityResult(False, TEACHER_INACTIVE)
    if not is_working_day(calendar, window):
        return AvailabilityResult(False, NOT_WORKING_DAY)
    if not within_working_hours(calendar, window):
        return AvailabilityResult(False, OUTSIDE_WORKING_HOURS)
    if not clear_of_breaks(calendar, window):
        return AvailabilityResult(False, ON_BREAK)
    if not clear_of_bookings(window, bookings):
        return AvailabilityResult(False, OVERLAP)
    if not under_daily_cap(calendar, classes_that_day):
        return AvailabilityResult(False, DAILY_LIMIT_REACHED)
    return AvailabilityResult(True)


def candidate_windows(calendar: TeacherCalendar, day: date, duration_minutes: int = 60, step_minutes: int = 30) -> List[Window]:
    """Slots of `duration_minutes` starting every `step_minutes` inside the day's working hours."""
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    out = []
    for block in calendar.intervals_on(day, 'work_hours'):
        cursor = block.start
        while cursor + duration <= block.end:
            out.append(Window(cursor, cursor + duration))
            cursor += step
    return out


# Package / reschedule rules

def package_covers(start_date: date, end_date: date, day: date) -> bool:
    return start_date <= day <= end_date


def credits_remaining(granted: int, consumed: int) -> int:
    return max(granted - consumed, 0)


def reschedules_remaining(max_reschedules: int, used: int) -> int:
    return max(max_reschedules - used, 0)


def teacher_change_permitted(current_teacher_id: int, target_teacher_id: int, allow_different_teacher: bool) -> bool:
    return current_teacher_id == target_teacher_id or bool(allow_different_teacher)


def has_minimum_notice(class_start: datetime, now: datetime, min_notice_hours: int) -> bool:
    """Classes can only be moved at least `min_notice_hours` before they start."""
    return class_start - now >= timedelta(hours=min_notice_hours)
