import logging

logger = logging.getLogger(__name__)


def _log(event: str, assignment, reason: str):
    payload = {
        'event': event,
        'assignment_id': assignment.id,
        'exam_id': assignment.exam_id,
        'teacher_id': assignment.teacher_id,
        'status': assignment.status,
        'reason': reason,
    }
    logger.info('%s', payload)


def exam_created(exam, teacher_ids):
    logger.info('%s', {
        'event': 'exam_created',
        'exam_id': exam.id,
        'created_by': exam.created_by_id,
        'teacher_ids': list(teacher_ids),
        'reason': 'Exam created by coordinator',
    })


def assignment_created(assignment):
    _log('exam_assignment_created', assignment, 'Exam delegated to teacher')


def assignment_completed(assignment):
    _log('exam_assignment_completed', assignment, 'Teacher completed the exam')


def assignment_reviewed(assignment):
    _log('exam_assignment_reviewed', assignment, f'Coordinator {assignment.status} the exam')


def transition_refused(assignment_id, current: str, target: str):
    logger.info('%s', {
        'event': 'exam_transition_refused',
        'assignment_id': assignment_id,
        'status': current,
        'target': target,
        'reason': 'Transition not allowed',
    })
