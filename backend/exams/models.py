from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class Exam(models.Model):
    """An exam a coordinator hands to one or more teachers.

    `status` and the review timestamps mirror the exam's assignments and are
    recomputed by `exams.services.assignment_state` after every transition.
    """

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        ASSIGNED = 'assigned', 'Assigned'
        COMPLETED = 'completed', 'Completed'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        'academics.Teacher',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='created_exams',
    )
    # First teacher the exam was handed to; kept for older clients.
    assigned_to = models.ForeignKey(
        'academics.Teacher',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='legacy_exams',
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True)
    due_date = models.DateField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('-created_at',)

    def __str__(self):
        return f"{self.title} ({self.status})"


class ExamAssignment(models.Model):
    class Status(models.TextChoices):
        ASSIGNED = 'assigned', 'Assigned'
        COMPLETED = 'completed', 'Completed'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='assignments')
    teacher = models.ForeignKey('academics.Teacher', on_delete=models.PROTECT, related_name='exam_assignments')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ASSIGNED, db_index=True)
    assigned_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.TextField(blank=True, default='')
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='reviewed_exam_assignments',
    )

    class Meta:
        ordering = ('assigned_at', 'id')
        constraints = [
            models.UniqueConstraint(fields=['exam', 'teacher'], name='unique_exam_teacher'),
        ]

    def __str__(self):
        return f"{self.exam.title} -> {self.teacher} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.APPROVED, self.Status.REJECTED)

    def save(self, *args, **kwargs):
        # After creation rows only change through conditional updates in the state service.
        if not self._state.adding:
            raise ValidationError('Exam assignments change only through state transitions')
        super().save(*args, **kwargs)
