"""Booking and cancelling single classes.

Booking runs the same entitlement and availability rules as a reschedule.
The teacher row is locked so two bookings cannot take the same slot, and
the chosen package row is locked so two bookings cannot spend its last
credit.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from academics.models import Student, StudentPackage, Teacher
from scheduling import policies
from scheduling.models import ScheduledClass
from scheduling.services import availability, entitlement, events
from tutoring.exceptions import (
    INVALID_TRANSITION,
    NOT_FOUND,
    PACKAGE_NOT_ELIGIBLE,
    SLOT_UNAVAILABLE,
    TEACHER_INACTIVE,
    PolicyViolation,
    ValidationError,
)

logger = logging.getLogger(__name__)


@transaction.atomic
def schedule_class(student_id, teacher_id, starts_at: datetime, duration_minutes: int = 60,
                   timezone_name: Optional[str] = None, title: str = '', notes: str = '',
                   now: Optional[datetime] = None) -> ScheduledClass:
    if not duration_minutes or int(duration_minutes) <= 0:
        raise ValidationError('duration_minutes must be positive', reason='InvalidDuration')
    if starts_at is None or starts_at.tzinfo is None:
        raise ValidationError('starts_at must be a timezone-aware instant', reason='InvalidWindow')
    ends_at = starts_at + timedelta(minutes=int(duration_minutes))
    now = now or timezone.now()

    teacher = Teacher.objects.select_for_update().filter(pk=teacher_id).first()
    if teacher is None:
        raise PolicyViolation(NOT_FOUND, f'Teacher {teacher_id} not found')
    if not teacher.active:
        raise PolicyViolation(SLOT_UNAVAILABLE, f'Teacher {teacher_id} is inactive', detail_reason=TEACHER_INACTIVE)
    student = Student.objects.filter(pk=student_id).first()
    if student is None:
        raise PolicyViolation(NOT_FOUND, f'Student {student_id} not found')

    day = starts_at.astimezone(ZoneInfo(student.timezone)).date()
    verdict = entitlement.can_schedule_on(student.pk, day)
    if not verdict.allowed:
        raise PolicyViolation(PACKAGE_NOT_ELIGIBLE, f'No package entitles this student to a class on {day.isoformat()}', detail_reason=verdict.reason)

    # re-count under the package lock; the verdict above was read unlocked
    student_package = StudentPackage.objects.select_for_update().get(pk=verdict.student_package.pk)
    if entitlement.credits_remaining(student_package) <= 0:
        raise PolicyViolation(
            PACKAGE_NOT_ELIGIBLE,
            f'No package entitles this student to a class on {day.isoformat()}',
            detail_reason=policies.NO_CREDITS_REMAINING,
        )

    slot = availability.check_availability(teacher, starts_at, ends_at)
    if not slot.available:
        raise PolicyViolation(SLOT_UNAVAILABLE, 'The teacher is not available in the requested slot', detail_reason=slot.reason)

    min_notice = getattr(settings, 'SCHEDULING_MIN_NOTICE_HOURS', 2)
    if not policies.has_minimum_notice(starts_at, now, min_notice):
        raise PolicyViolation(
            SLOT_UNAVAILABLE,
            f'Classes must be booked at least {min_notice} hours ahead',
            detail_reason=policies.NEW_SLOT_TOO_SOON,
        )

    scheduled_class = ScheduledClass.objects.create(
        student=student,
        teacher=teacher,
        student_package=student_package,
        title=title or 'Individual Class',
        starts_at=starts_at,
        duration_minutes=int(duration_minutes),
        timezone=timezone_name or teacher.timezone,
        notes=notes or '',
    )
    events.class_scheduled(scheduled_class)
    return scheduled_class


@transaction.atomic
def cancel_class(class_id) -> ScheduledClass:
    """Cancel a scheduled class. Its package credit is released."""
    scheduled_class = ScheduledClass.objects.select_for_update().filter(pk=class_id).first()
    if scheduled_class is None:
        raise PolicyViolation(NOT_FOUND, f'Class {class_id} not found')
    if scheduled_class.status != ScheduledClass.Status.SCHEDULED:
        raise PolicyViolation(INVALID_TRANSITION, f'Class {class_id} is {scheduled_class.status} and cannot be cancelled')
    scheduled_class.status = ScheduledClass.Status.CANCELLED
    scheduled_class.version += 1
    scheduled_class.save(update_fields=['status', 'version', 'updated_at'])
    events.class_cancelled(scheduled_class)
    return scheduled_class
