"""Reschedule engine: move a class to a new slot and/or teacher.

Everything happens inside one transaction. The class row and the target
teacher row are locked first, so two requests for the same class, or two
requests competing for the same teacher's time, are serialized. The class
update is additionally a compare-and-swap on ``version``; a lost swap
raises ConflictError, which gets ``SCHEDULING_CONFLICT_RETRIES`` fresh
attempts before it reaches the caller.

Rule order, first failure wins:

1. the class is still ``scheduled``;
2. target teacher: same teacher, or a different one only when the student
   allows it (TeacherChangeNotPermitted);
3. package entitlement on the new date in the student's zone
   (PackageNotEligible, with the checker's reason as ``detail_reason``);
4. reschedule quota of that package (PackageNotEligible /
   NoReschedulesRemaining);
5. target teacher availability over the new window (SlotUnavailable);
6. minimum notice before the class's current start and before the new
   start (ClassNotReschedulable).

A move into another package's window charges that package: the class is
re-pointed at it, so the credit follows the class.
"""
import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from academics.models import StudentPackage, Teacher
from scheduling import policies
from scheduling.models import RescheduledClass, ScheduledClass
from scheduling.services import availability, binding_registry, entitlement, events
from tutoring.exceptions import (
    CLASS_NOT_RESCHEDULABLE,
    NOT_FOUND,
    PACKAGE_NOT_ELIGIBLE,
    SLOT_UNAVAILABLE,
    TEACHER_CHANGE_NOT_PERMITTED,
    TEACHER_INACTIVE,
    ConflictError,
    PolicyViolation,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _validate_request(class_id, new_start: datetime, new_end: datetime, timezone_name: Optional[str]) -> int:
    if class_id is None:
        raise ValidationError('class_id is required', reason='MissingClass')
    try:
        window = policies.Window(new_start, new_end)
    except ValueError as exc:
        raise ValidationError(str(exc), reason='InvalidWindow')
    seconds = (window.end - window.start).total_seconds()
    if seconds % 60:
        raise ValidationError('Class duration must be a whole number of minutes', reason='InvalidWindow')
    if timezone_name:
        try:
            ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError(f'Unknown timezone: {timezone_name}', reason='InvalidTimezone')
    return int(seconds // 60)


def _lock_class(class_id) -> ScheduledClass:
    scheduled_class = (
        ScheduledClass.objects.select_for_update()
        .select_related('student', 'teacher')
        .filter(pk=class_id)
        .first()
    )
    if scheduled_class is None:
        raise PolicyViolation(NOT_FOUND, f'Class {class_id} not found')
    return scheduled_class


def _resolve_target_teacher(scheduled_class: ScheduledClass, requested_teacher_id) -> Teacher:
    current_id = scheduled_class.teacher_id
    target_id = current_id if requested_teacher_id in (None, '') else int(requested_teacher_id)

    if not policies.teacher_change_permitted(current_id, target_id, scheduled_class.student.allow_different_teacher):
        raise PolicyViolation(
            TEACHER_CHANGE_NOT_PERMITTED,
            'This student can only be rescheduled with their current teacher',
        )

    target = Teacher.objects.select_for_update().filter(pk=target_id).first()
    if target is None:
        raise PolicyViolation(NOT_FOUND, f'Teacher {target_id} not found')
    if not target.active:
        raise PolicyViolation(SLOT_UNAVAILABLE, f'Teacher {target_id} is inactive', detail_reason=TEACHER_INACTIVE)
    return target


def _check_package(scheduled_class: ScheduledClass, new_start: datetime) -> StudentPackage:
    student = scheduled_class.student
    day = new_start.astimezone(ZoneInfo(student.timezone)).date()
    verdict = entitlement.can_schedule_on(student.pk, day)
    if not verdict.allowed:
        raise PolicyViolation(
            PACKAGE_NOT_ELIGIBLE,
            f'No package entitles this student to a class on {day.isoformat()}',
            detail_reason=verdict.reason,
        )

    student_package = StudentPackage.objects.select_for_update().select_related('package').get(pk=verdict.student_package.pk)
    if student_package.pk != scheduled_class.student_package_id and entitlement.credits_remaining(student_package) <= 0:
        raise PolicyViolation(
            PACKAGE_NOT_ELIGIBLE,
            f'No package entitles this student to a class on {day.isoformat()}',
            detail_reason=policies.NO_CREDITS_REMAINING,
        )
    if entitlement.reschedules_remaining(student_package) <= 0:
        raise PolicyViolation(
            PACKAGE_NOT_ELIGIBLE,
            'All reschedules included in this package have been used',
            detail_reason=policies.NO_RESCHEDULES_REMAINING,
        )
    return student_package


def _reschedule_once(class_id, new_start, new_end, duration_minutes, requested_teacher_id, requested_by, reason,
                     timezone_name, expected_version, binding_policy, now) -> RescheduledClass:
    with transaction.atomic():
        scheduled_class = _lock_class(class_id)
        if expected_version is not None and scheduled_class.version != int(expected_version):
            raise ConflictError(
                f'Class {class_id} is at version {scheduled_class.version}, not {expected_version}. Reload and try again.'
            )
        if scheduled_class.status != ScheduledClass.Status.SCHEDULED:
            raise PolicyViolation(CLASS_NOT_RESCHEDULABLE, f'Class {class_id} is {scheduled_class.status}')

        target = _resolve_target_teacher(scheduled_class, requested_teacher_id)
        student_package = _check_package(scheduled_class, new_start)

        verdict = availability.check_availability(target, new_start, new_end, exclude_class_id=scheduled_class.pk)
        if not verdict.available:
            raise PolicyViolation(
                SLOT_UNAVAILABLE,
                'The teacher is not available in the requested slot',
                detail_reason=verdict.reason,
            )

        min_notice = getattr(settings, 'SCHEDULING_MIN_NOTICE_HOURS', 2)
        if not policies.has_minimum_notice(scheduled_class.starts_at, now, min_notice):
            raise PolicyViolation(
                CLASS_NOT_RESCHEDULABLE,
                f'Classes can only be rescheduled at least {min_notice} hours before they start',
                detail_reason=policies.CLASS_STARTS_SOON,
            )
        if not policies.has_minimum_notice(new_start, now, min_notice):
            raise PolicyViolation(
                CLASS_NOT_RESCHEDULABLE,
                f'The new slot must start at least {min_notice} hours from now',
                detail_reason=policies.NEW_SLOT_TOO_SOON,
            )

        old_teacher_id = scheduled_class.teacher_id
        if target.pk != old_teacher_id:
            # a failed bind propagates and rolls the whole reschedule back
            binding_registry.ensure_bound(target.pk, scheduled_class.student_id, policy=binding_policy)

        # update() skips save(), so ends_at is written explicitly
        updated = ScheduledClass.objects.filter(pk=scheduled_class.pk, version=scheduled_class.version).update(
            teacher=target,
            student_package=student_package,
            starts_at=new_start,
            ends_at=new_end,
            duration_minutes=duration_minutes,
            timezone=timezone_name or scheduled_class.timezone,
            version=F('version') + 1,
            updated_at=now,
        )
        if updated != 1:
            raise ConflictError(f'Class {class_id} was modified concurrently')

        StudentPackage.objects.filter(pk=student_package.pk).update(used_reschedules=F('used_reschedules') + 1)

        record = RescheduledClass.objects.create(
            scheduled_class=scheduled_class,
            student_id=scheduled_class.student_id,
            student_package=student_package,
            old_teacher_id=old_teacher_id,
            new_teacher=target,
            old_starts_at=scheduled_class.starts_at,
            old_ends_at=scheduled_class.ends_at,
            new_starts_at=new_start,
            new_ends_at=new_end,
            timezone=timezone_name or scheduled_class.timezone,
            reason=reason or '',
            requested_by=requested_by if getattr(requested_by, 'pk', None) else None,
        )
    events.class_rescheduled(record)
    return record


def reschedule(class_id, new_start: datetime, new_end: datetime, requested_teacher_id=None, *,
               requested_by=None, reason: str = '', timezone_name: Optional[str] = None,
               expected_version: Optional[int] = None,
               binding_policy: Optional[binding_registry.BindingPolicy] = None,
               now: Optional[datetime] = None) -> RescheduledClass:
    """Move class `class_id` to ``[new_start, new_end)``, optionally with another teacher.

    Returns the RescheduledClass audit row. Rescheduling to the slot the
    class already occupies is allowed and still writes a row.

    When `expected_version` is given the caller is doing its own optimistic
    check, so a mismatch is reported straight away instead of retried.
    """
    duration_minutes = _validate_request(class_id, new_start, new_end, timezone_name)
    now = now or timezone.now()
    retries = 0 if expected_version is not None else int(getattr(settings, 'SCHEDULING_CONFLICT_RETRIES', 1))

    attempt = 0
    while True:
        try:
            return _reschedule_once(
                class_id, new_start, new_end, duration_minutes, requested_teacher_id, requested_by, reason,
                timezone_name, expected_version, binding_policy, now,
            )
        except ConflictError:
            events.reschedule_conflict(class_id, attempt)
            if attempt >= retries:
                raise
            attempt += 1
        except PolicyViolation as exc:
            events.reschedule_rejected(class_id, exc.reason, exc.detail_reason)
            raise


def history(class_id):
    """Audit trail of a class, oldest first."""
    if not ScheduledClass.objects.filter(pk=class_id).exists():
        raise PolicyViolation(NOT_FOUND, f'Class {class_id} not found')
    return (
        RescheduledClass.objects.filter(scheduled_class_id=class_id)
        .select_related('old_teacher', 'new_teacher', 'requested_by')
        .order_by('created_at', 'id')
    )
