"""State transitions for exam assignments.

    assigned -> completed -> approved | rejected

approved and rejected are terminal. Each transition is a conditional
update on the row's current status inside a transaction, so of two
concurrent calls from the same state only one can win; the other sees
InvalidTransition. After every transition the parent exam's status and
timestamps are recomputed from all of its assignments.
"""
from datetime import date
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from academics.models import Teacher
from exams.models import Exam, ExamAssignment
from exams.services import events
from tutoring.exceptions import (
    DUPLICATE_ASSIGNMENT,
    INVALID_TRANSITION,
    NOT_FOUND,
    TEACHER_INACTIVE,
    PolicyViolation,
    ValidationError,
)

S = ExamAssignment.Status

# keyed by raw values; rows read back from the database hold plain strings
ALLOWED_TRANSITIONS = {
    S.ASSIGNED.value: frozenset({S.COMPLETED.value}),
    S.COMPLETED.value: frozenset({S.APPROVED.value, S.REJECTED.value}),
    S.APPROVED.value: frozenset(),
    S.REJECTED.value: frozenset(),
}

REVIEW_DECISIONS = (S.APPROVED.value, S.REJECTED.value)


def can_transition(current: str, target: str) -> bool:
    return str(target) in ALLOWED_TRANSITIONS.get(str(current), frozenset())


def exam_status_for(statuses) -> str:
    """Derive an exam's status from its assignments' statuses."""
    statuses = list(statuses)
    if not statuses:
        return Exam.Status.DRAFT
    if all(s == S.APPROVED for s in statuses):
        return Exam.Status.APPROVED
    if any(s == S.REJECTED for s in statuses):
        return Exam.Status.REJECTED
    if all(s in (S.COMPLETED, S.APPROVED, S.REJECTED) for s in statuses):
        return Exam.Status.COMPLETED
    return Exam.Status.ASSIGNED


def _sync_exam(exam_id: int):
    rows = ExamAssignment.objects.filter(exam_id=exam_id)
    new_status = exam_status_for(rows.values_list('status', flat=True))
    stamps = rows.aggregate(completed=Max('completed_at'), reviewed=Max('reviewed_at'))
    fields = {'status': new_status, 'updated_at': timezone.now()}
    if new_status in (Exam.Status.COMPLETED, Exam.Status.APPROVED, Exam.Status.REJECTED):
        fields['completed_at'] = stamps['completed']
    else:
        fields['completed_at'] = None
    if new_status in (Exam.Status.APPROVED, Exam.Status.REJECTED):
        fields['reviewed_at'] = stamps['reviewed']
        last = rows.exclude(reviewed_at__isnull=True).order_by('-reviewed_at', '-id').first()
        fields['review_notes'] = last.review_notes if last else ''
    Exam.objects.filter(pk=exam_id).update(**fields)


def _transition(assignment_id, target: str, guard=None, **fields) -> ExamAssignment:
    with transaction.atomic():
        assignment = ExamAssignment.objects.select_for_update().filter(pk=assignment_id).first()
        if assignment is None:
            raise PolicyViolation(NOT_FOUND, f'Exam assignment {assignment_id} not found')
        if guard is not None:
            guard(assignment)
        current = assignment.status
        if not can_transition(current, target):
            events.transition_refused(assignment_id, current, target)
            raise PolicyViolation(INVALID_TRANSITION, f'Cannot move exam assignment from {current} to {target}')

        updated = ExamAssignment.objects.filter(pk=assignment_id, status=current).update(status=target, **fields)
        if updated != 1:
            events.transition_refused(assignment_id, current, target)
            raise PolicyViolation(INVALID_TRANSITION, f'Exam assignment {assignment_id} changed state concurrently')

        assignment.refresh_from_db()
        _sync_exam(assignment.exam_id)
    return assignment


@transaction.atomic
def assign(exam_id, teacher_id) -> ExamAssignment:
    """Delegate an exam to a teacher. The (exam, teacher) pair is unique."""
    exam = Exam.objects.select_for_update().filter(pk=exam_id).first()
    if exam is None:
        raise PolicyViolation(NOT_FOUND, f'Exam {exam_id} not found')
    teacher = Teacher.objects.filter(pk=teacher_id).first()
    if teacher is None:
        raise PolicyViolation(NOT_FOUND, f'Teacher {teacher_id} not found')
    if not teacher.active:
        raise PolicyViolation(TEACHER_INACTIVE, f'Teacher {teacher_id} is inactive')

    try:
        with transaction.atomic():
            assignment = ExamAssignment.objects.create(exam=exam, teacher=teacher)
    except IntegrityError:
        raise PolicyViolation(DUPLICATE_ASSIGNMENT, f'Exam {exam_id} is already assigned to teacher {teacher_id}')

    if exam.assigned_to_id is None:
        Exam.objects.filter(pk=exam.pk).update(assigned_to=teacher)
    _sync_exam(exam.pk)
    events.assignment_created(assignment)
    return assignment


def complete(assignment_id, *, teacher: Optional[Teacher] = None) -> ExamAssignment:
    """Mark an assignment completed. Only valid from `assigned`.

    When `teacher` is given it must be the assigned teacher.
    """
    def _only_assignee(assignment):
        if teacher is not None and assignment.teacher_id != teacher.pk:
            raise PermissionDenied('Only the assigned teacher can complete this exam')

    assignment = _transition(assignment_id, S.COMPLETED, guard=_only_assignee, completed_at=timezone.now())
    events.assignment_completed(assignment)
    return assignment


def review(assignment_id, decision: str, notes: str = '', *, reviewer=None) -> ExamAssignment:
    """Approve or reject a completed assignment."""
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(f'decision must be one of {", ".join(REVIEW_DECISIONS)}', reason='InvalidDecision')
    assignment = _transition(
        assignment_id,
        decision,
        reviewed_at=timezone.now(),
        review_notes=notes or '',
        reviewed_by=reviewer if getattr(reviewer, 'pk', None) else None,
    )
    events.assignment_reviewed(assignment)
    return assignment


@transaction.atomic
def create_exam(title: str, created_by: Optional[Teacher] = None, teacher_ids: Iterable[int] = (),
                description: str = '', due_date: Optional[date] = None) -> Exam:
    """Create an exam and delegate it to `teacher_ids` in one transaction."""
    if not title or not title.strip():
        raise ValidationError('title is required', reason='MissingTitle')
    exam = Exam.objects.create(
        title=title.strip(),
        description=description or '',
        created_by=created_by,
        due_date=due_date,
    )
    ids = list(dict.fromkeys(teacher_ids))
    for teacher_id in ids:
        assign(exam.pk, teacher_id)
    exam.refresh_from_db()
    events.exam_created(exam, ids)
    return exam
