from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class TeacherStudentBinding(models.Model):
    """The assignment of a student to a teacher.

    The unique constraint is on the pair itself, not on (pair, active). An
    unbound pair keeps its row with ``active=False``; what a later re-bind
    does with that row is decided by the binding policy in
    `scheduling.services.binding_registry`.
    """
    teacher = models.ForeignKey('academics.Teacher', on_delete=models.CASCADE, related_name='student_bindings')
    student = models.ForeignKey('academics.Student', on_delete=models.CASCADE, related_name='teacher_bindings')
    assigned_at = models.DateTimeField()
    active = models.BooleanField(default=True, db_index=True)
    # [{"day": "monday", "start_time": "13:00", "end_time": "14:00"}]
    weekly_schedule = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'teacher_student_bindings'
        constraints = [
            models.UniqueConstraint(fields=['teacher', 'student'], name='unique_teacher_student'),
        ]

    def __str__(self):
        state = 'active' if self.active else 'inactive'
        return f"{self.teacher} -> {self.student} ({state})"


class ScheduledClass(models.Model):
    """A single class occurrence between one student and one teacher.

    `starts_at`/`ends_at` are absolute instants; `timezone` records the zone
    the slot was requested in. Rows are only moved through the reschedule
    engine and are never deleted; cancelling sets `status`.
    """

    class Status(models.TextChoices):
        SCHEDULED = 'scheduled', 'Scheduled'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    student = models.ForeignKey('academics.Student', on_delete=models.PROTECT, related_name='classes')
    teacher = models.ForeignKey('academics.Teacher', on_delete=models.PROTECT, related_name='classes')
    student_package = models.ForeignKey(
        'academics.StudentPackage',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='classes',
    )
    title = models.CharField(max_length=200, default='Individual Class')
    starts_at = models.DateTimeField(db_index=True)
    ends_at = models.DateTimeField(db_index=True)
    duration_minutes = models.PositiveIntegerField(default=60)
    timezone = models.CharField(max_length=64, default='UTC')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED, db_index=True)
    # Bumped on every reschedule; used for optimistic concurrency checks.
    version = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('starts_at',)
        indexes = [models.Index(fields=['teacher', 'starts_at'], name='scheduled_class_teacher_idx')]

    def __str__(self):
        return f"Class #{self.pk} {self.student} with {self.teacher} @ {self.starts_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if self.starts_at is not None and self.duration_minutes:
            self.ends_at = self.starts_at + timedelta(minutes=self.duration_minutes)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Scheduled classes are cancelled, never deleted')


class RescheduledClass(models.Model):
    """Append-only audit row written once per successful reschedule."""

    class TeacherChange(models.TextChoices):
        SAME = 'same', 'Same teacher'
        DIFFERENT = 'different', 'Different teacher'

    scheduled_class = models.ForeignKey(ScheduledClass, on_delete=models.PROTECT, related_name='reschedules')
    student = models.ForeignKey('academics.Student', on_delete=models.PROTECT, related_name='reschedules')
    student_package = models.ForeignKey(
        'academics.StudentPackage',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='reschedules',
    )
    old_teacher = models.ForeignKey('academics.Teacher', on_delete=models.PROTECT, related_name='reschedules_from')
    new_teacher = models.ForeignKey('academics.Teacher', on_delete=models.PROTECT, related_name='reschedules_to')
    teacher_change = models.CharField(max_length=10, choices=TeacherChange.choices)
    old_starts_at = models.DateTimeField()
    old_ends_at = models.DateTimeField()
    new_starts_at = models.DateTimeField()
    new_ends_at = models.DateTimeField()
    timezone = models.CharField(max_length=64, default='UTC')
    reason = models.TextField(blank=True, default='')
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='requested_reschedules',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'rescheduled_classes'
        ordering = ('created_at', 'id')

    def __str__(self):
        return f"Reschedule #{self.pk} of class #{self.scheduled_class_id} ({self.teacher_change})"

    @property
    def different_teacher(self) -> bool:
        return self.teacher_change == self.TeacherChange.DIFFERENT

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Reschedule records are append-only')
        if self.old_teacher_id == self.new_teacher_id:
            self.teacher_change = self.TeacherChange.SAME
        else:
            self.teacher_change = self.TeacherChange.DIFFERENT
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Reschedule records are append-only')
