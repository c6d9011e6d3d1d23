"""Package entitlement checks.

Read-only and idempotent: nothing here consumes a credit or a reschedule.
The reschedule engine and booking service do the bookkeeping once they
have decided to write.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional

from academics.models import Student, StudentPackage
from scheduling import policies
from scheduling.models import ScheduledClass
from tutoring.exceptions import ValidationError


@dataclass
class Entitlement:
    allowed: bool
    reason: Optional[str] = None
    student_package: Optional[StudentPackage] = None

    def __bool__(self):
        return self.allowed


def credits_consumed(student_package: StudentPackage) -> int:
    """Classes booked against the package that were not cancelled."""
    return (
        ScheduledClass.objects.filter(student_package=student_package)
        .exclude(status=ScheduledClass.Status.CANCELLED)
        .count()
    )


def credits_remaining(student_package: StudentPackage) -> int:
    return policies.credits_remaining(student_package.credits_granted, credits_consumed(student_package))


def reschedules_remaining(student_package: StudentPackage) -> int:
    return policies.reschedules_remaining(student_package.package.max_reschedules, student_package.used_reschedules)


def can_schedule_on(student_id, day: date) -> Entitlement:
    """Whether the student's active package covers `day` with a credit left.

    When several active packages cover the day, the most recently started
    one with remaining credits wins.
    """
    if student_id is None or day is None:
        raise ValidationError('student and date are required', reason='MissingInput')
    if not Student.objects.filter(pk=student_id).exists():
        raise ValidationError(f'Student {student_id} does not exist', reason='UnknownStudent')

    active = list(
        StudentPackage.objects.select_related('package')
        .filter(student_id=student_id, status=StudentPackage.Status.ACTIVE)
        .order_by('-start_date', '-id')
    )
    if not active:
        return Entitlement(False, policies.NO_ACTIVE_PACKAGE)

    covering = [sp for sp in active if policies.package_covers(sp.start_date, sp.end_date, day)]
    if not covering:
        return Entitlement(False, policies.PACKAGE_EXPIRED, active[0])

    for student_package in covering:
        if credits_remaining(student_package) > 0:
            return Entitlement(True, None, student_package)
    return Entitlement(False, policies.NO_CREDITS_REMAINING, covering[0])
