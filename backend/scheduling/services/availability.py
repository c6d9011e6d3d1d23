"""Teacher availability queries.

Read-only: nothing here writes. The reschedule engine and the booking
service call `check_availability` inside their own transaction so the
overlap check and the write that follows happen atomically.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from django.conf import settings

from academics.models import Teacher
from scheduling import policies
from scheduling.models import ScheduledClass
from tutoring.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _window(window_start: datetime, window_end: datetime) -> policies.Window:
    try:
        return policies.Window(window_start, window_end)
    except ValueError as exc:
        raise ValidationError(str(exc), reason='InvalidWindow')


def _resolve_teacher(teacher) -> Teacher:
    if teacher is None:
        raise ValidationError('teacher is required', reason='MissingTeacher')
    if isinstance(teacher, Teacher):
        return teacher
    found = Teacher.objects.filter(pk=teacher).first()
    if found is None:
        raise ValidationError(f'Teacher {teacher} does not exist', reason='UnknownTeacher')
    return found


def _booked_classes(teacher: Teacher, span: policies.Window, exclude_class_id: Optional[int] = None):
    qs = ScheduledClass.objects.filter(
        teacher=teacher,
        starts_at__lt=span.end,
        ends_at__gt=span.start,
    ).exclude(status=ScheduledClass.Status.CANCELLED)
    if exclude_class_id is not None:
        qs = qs.exclude(pk=exclude_class_id)
    return qs


def check_availability(teacher, window_start: datetime, window_end: datetime, exclude_class_id: Optional[int] = None) -> policies.AvailabilityResult:
    """Evaluate every availability rule for `teacher` over the window.

    `exclude_class_id` ignores one booking, used when a class is moved
    within the same teacher's calendar.
    """
    teacher = _resolve_teacher(teacher)
    window = _window(window_start, window_end)
    calendar = policies.TeacherCalendar.from_teacher(teacher)

    day = policies.local_day(calendar, window)
    if day is None:
        return policies.AvailabilityResult(False, policies.NOT_WORKING_DAY)

    day_span = calendar.local_day_bounds(day)
    day_classes = list(_booked_classes(teacher, day_span, exclude_class_id).values_list('starts_at', 'ends_at'))
    bookings = [policies.Window(start, end) for start, end in day_classes if policies.overlaps(start, end, window.start, window.end)]
    # classes counted by their local start date
    classes_that_day = sum(1 for start, _ in day_classes if day_span.start <= start < day_span.end)

    result = policies.evaluate_availability(calendar, window, bookings, classes_that_day)
    if not result.available:
        logger.info('teacher=%s unavailable %s..%s reason=%s', teacher.pk, window.start.isoformat(), window.end.isoformat(), result.reason)
    return result


def is_available(teacher_id, window_start: datetime, window_end: datetime, exclude_class_id: Optional[int] = None) -> bool:
    return check_availability(teacher_id, window_start, window_end, exclude_class_id).available


def available_slots(teacher, day: date, duration_minutes: int = 60, step_minutes: int = 30) -> List[policies.Window]:
    """Free windows on a teacher-local `day`, stepping through working hours."""
    if duration_minutes <= 0 or step_minutes <= 0:
        raise ValidationError('duration and step must be positive', reason='InvalidDuration')
    teacher = _resolve_teacher(teacher)
    calendar = policies.TeacherCalendar.from_teacher(teacher)
    if not calendar.active or policies.weekday_name(day) not in calendar.working_days:
        return []

    day_span = calendar.local_day_bounds(day)
    rows = list(_booked_classes(teacher, day_span).values_list('starts_at', 'ends_at'))
    bookings = [policies.Window(start, end) for start, end in rows]
    classes_that_day = sum(1 for start, _ in rows if day_span.start <= start < day_span.end)

    free = []
    for candidate in policies.candidate_windows(calendar, day, duration_minutes, step_minutes):
        if policies.evaluate_availability(calendar, candidate, bookings, classes_that_day).available:
            free.append(candidate)
    return free


def available_dates(teacher, start: date, end: date, duration_minutes: int = 60) -> List[date]:
    """Days between `start` and `end` (inclusive) with at least one free slot.

    Ranges longer than ``SCHEDULING_MAX_AVAILABILITY_DAYS`` are truncated.
    """
    if end < start:
        raise ValidationError('end date must not be before start date', reason='InvalidRange')
    max_days = getattr(settings, 'SCHEDULING_MAX_AVAILABILITY_DAYS', 90)
    if (end - start).days > max_days:
        logger.info('availability range of %d days truncated to %d', (end - start).days, max_days)
        end = start + timedelta(days=max_days)

    teacher = _resolve_teacher(teacher)
    out = []
    day = start
    while day <= end:
        if available_slots(teacher, day, duration_minutes):
            out.append(day)
        day += timedelta(days=1)
    return out
