import logging
from typing import Optional

logger = logging.getLogger(__name__)


def _log(event: str, reason: str, level: int = logging.INFO, **fields):
    payload = {'event': event, **fields, 'reason': reason}
    logger.log(level, '%s', payload)


def class_rescheduled(record):
    """Emit after a reschedule commits. `record` is the RescheduledClass row."""
    _log(
        'class_rescheduled',
        record.reason or 'Class moved',
        scheduled_class_id=record.scheduled_class_id,
        student_id=record.student_id,
        old_teacher_id=record.old_teacher_id,
        new_teacher_id=record.new_teacher_id,
        teacher_change=record.teacher_change,
        new_starts_at=record.new_starts_at.isoformat(),
    )


def reschedule_rejected(class_id: int, reason: str, detail_reason: Optional[str] = None):
    _log('reschedule_rejected', reason, scheduled_class_id=class_id, detail_reason=detail_reason)


def reschedule_conflict(class_id: int, attempt: int):
    _log('reschedule_conflict', 'Concurrent modification', logging.WARNING, scheduled_class_id=class_id, attempt=attempt)


def class_scheduled(scheduled_class):
    _log(
        'class_scheduled',
        'Class booked',
        scheduled_class_id=scheduled_class.pk,
        student_id=scheduled_class.student_id,
        teacher_id=scheduled_class.teacher_id,
        starts_at=scheduled_class.starts_at.isoformat(),
    )


def class_cancelled(scheduled_class):
    _log('class_cancelled', 'Class cancelled', scheduled_class_id=scheduled_class.pk, teacher_id=scheduled_class.teacher_id)


def binding_created(binding, revived: bool = False):
    _log(
        'binding_revived' if revived else 'binding_created',
        'Teacher assigned to student',
        binding_id=binding.pk,
        teacher_id=binding.teacher_id,
        student_id=binding.student_id,
    )


def binding_superseded(student_id: int, teacher_ids):
    _log('binding_superseded', 'Student moved to another teacher', student_id=student_id, teacher_ids=list(teacher_ids))


def binding_removed(teacher_id: int, student_id: int, purged: bool = False):
    _log(
        'binding_purged' if purged else 'binding_deactivated',
        'Teacher unassigned from student',
        teacher_id=teacher_id,
        student_id=student_id,
    )
