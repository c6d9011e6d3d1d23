"""Teacher-student binding registry.

A student has at most one current teacher. The pair table has a plain
unique constraint on (teacher, student), so what happens when a pair that
was unbound is bound again is a policy decision:

- ``permanent``: a pair row exists forever once created. Unbinding
  deactivates it and binding the pair again is rejected.
- ``revive``: unbinding deactivates the row and binding the pair again
  reactivates it.

The policy is chosen by ``SCHEDULING_BINDING_POLICY`` (default ``revive``)
and can be overridden per call. In both, the database constraint is the
final arbiter for concurrent binds of the same pair.
"""
import logging
from typing import Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.utils import timezone

from academics.models import Student, Teacher
from scheduling.models import TeacherStudentBinding
from scheduling.services import events
from tutoring.exceptions import (
    DUPLICATE_BINDING,
    NOT_FOUND,
    TEACHER_INACTIVE,
    PolicyViolation,
)

logger = logging.getLogger(__name__)


class BindingPolicy:
    name = ''

    def bind_existing(self, binding: TeacherStudentBinding) -> TeacherStudentBinding:
        """Handle a bind for a pair that already has a row."""
        raise NotImplementedError

    def create(self, teacher: Teacher, student: Student, notes: str = '', weekly_schedule=None) -> TeacherStudentBinding:
        try:
            with transaction.atomic():
                return TeacherStudentBinding.objects.create(
                    teacher=teacher,
                    student=student,
                    assigned_at=timezone.now(),
                    active=True,
                    notes=notes or '',
                    weekly_schedule=weekly_schedule or [],
                )
        except IntegrityError:
            # lost a race with a concurrent bind of the same pair
            raise PolicyViolation(DUPLICATE_BINDING, f'Teacher {teacher.pk} is already bound to student {student.pk}')


class PermanentPairPolicy(BindingPolicy):
    name = 'permanent'

    def bind_existing(self, binding):
        state = 'already bound' if binding.active else 'was bound before and cannot be re-bound'
        raise PolicyViolation(DUPLICATE_BINDING, f'Teacher {binding.teacher_id} {state} to student {binding.student_id}')


class RevivePairPolicy(BindingPolicy):
    name = 'revive'

    def bind_existing(self, binding):
        if binding.active:
            raise PolicyViolation(DUPLICATE_BINDING, f'Teacher {binding.teacher_id} is already bound to student {binding.student_id}')
        binding.active = True
        binding.assigned_at = timezone.now()
        binding.save(update_fields=['active', 'assigned_at', 'updated_at'])
        return binding


POLICIES = {
    PermanentPairPolicy.name: PermanentPairPolicy,
    RevivePairPolicy.name: RevivePairPolicy,
}


def get_policy(name: Optional[str] = None) -> BindingPolicy:
    name = name or getattr(settings, 'SCHEDULING_BINDING_POLICY', RevivePairPolicy.name)
    try:
        return POLICIES[name]()
    except KeyError:
        raise ImproperlyConfigured(f'Unknown binding policy {name!r}; expected one of {sorted(POLICIES)}')


def _lock_teacher(teacher_id) -> Teacher:
    teacher = Teacher.objects.select_for_update().filter(pk=teacher_id).first()
    if teacher is None:
        raise PolicyViolation(NOT_FOUND, f'Teacher {teacher_id} not found')
    return teacher


def _get_student(student_id) -> Student:
    student = Student.objects.filter(pk=student_id).first()
    if student is None:
        raise PolicyViolation(NOT_FOUND, f'Student {student_id} not found')
    return student


def _supersede(binding: TeacherStudentBinding):
    """Deactivate every other active binding of the student."""
    others = TeacherStudentBinding.objects.filter(student_id=binding.student_id, active=True).exclude(pk=binding.pk)
    teacher_ids = list(others.values_list('teacher_id', flat=True))
    if teacher_ids:
        others.update(active=False, updated_at=timezone.now())
        events.binding_superseded(binding.student_id, teacher_ids)


@transaction.atomic
def bind(teacher_id, student_id, notes: str = '', weekly_schedule=None, policy: Optional[BindingPolicy] = None) -> TeacherStudentBinding:
    """Make `teacher_id` the student's current teacher.

    Raises PolicyViolation with DuplicateBinding when the pair is already
    live (or, under the permanent policy, was ever bound), TeacherInactive
    for an inactive teacher and NotFound for unknown ids.
    """
    policy = policy or get_policy()
    teacher = _lock_teacher(teacher_id)
    if not teacher.active:
        raise PolicyViolation(TEACHER_INACTIVE, f'Teacher {teacher.pk} is inactive and cannot take new students')
    student = _get_student(student_id)

    existing = TeacherStudentBinding.objects.select_for_update().filter(teacher=teacher, student=student).first()
    if existing is not None:
        binding = policy.bind_existing(existing)
        revived = True
    else:
        binding = policy.create(teacher, student, notes, weekly_schedule)
        revived = False

    _supersede(binding)
    events.binding_created(binding, revived=revived)
    return binding


@transaction.atomic
def unbind(teacher_id, student_id) -> TeacherStudentBinding:
    """Deactivate the live binding of the pair. The row is kept."""
    binding = TeacherStudentBinding.objects.select_for_update().filter(
        teacher_id=teacher_id, student_id=student_id, active=True,
    ).first()
    if binding is None:
        raise PolicyViolation(NOT_FOUND, f'No active binding between teacher {teacher_id} and student {student_id}')
    binding.active = False
    binding.save(update_fields=['active', 'updated_at'])
    events.binding_removed(teacher_id, student_id)
    return binding


@transaction.atomic
def purge(teacher_id, student_id) -> None:
    """Hard-delete the pair row, active or not, so the pair can be bound afresh."""
    deleted, _ = TeacherStudentBinding.objects.filter(teacher_id=teacher_id, student_id=student_id).delete()
    if not deleted:
        raise PolicyViolation(NOT_FOUND, f'No binding between teacher {teacher_id} and student {student_id}')
    events.binding_removed(teacher_id, student_id, purged=True)


def current_binding(student_id) -> Optional[TeacherStudentBinding]:
    return (
        TeacherStudentBinding.objects.select_related('teacher')
        .filter(student_id=student_id, active=True)
        .order_by('-assigned_at', '-id')
        .first()
    )


def current_teacher(student_id) -> Optional[Teacher]:
    binding = current_binding(student_id)
    return binding.teacher if binding else None


def ensure_bound(teacher_id, student_id, policy: Optional[BindingPolicy] = None) -> Tuple[TeacherStudentBinding, bool]:
    """Bind the pair unless it is already live. Returns (binding, changed)."""
    live = TeacherStudentBinding.objects.filter(teacher_id=teacher_id, student_id=student_id, active=True).first()
    if live is not None:
        return live, False
    return bind(teacher_id, student_id, policy=policy), True
