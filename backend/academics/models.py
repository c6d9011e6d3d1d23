import re
from datetime import time
from typing import Dict, List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
DEFAULT_WORKING_DAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday']

_HHMM = re.compile(r'^([0-1][0-9]|2[0-3]):[0-5][0-9]$')


def _default_timezone():
    return getattr(settings, 'ADMIN_TIMEZONE', 'UTC')


def _default_working_days():
    return list(DEFAULT_WORKING_DAYS)


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


def validate_timezone_name(value: str):
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f'Unknown timezone: {value}')


def validate_day_intervals(value, label='Work hours'):
    """Validate a ``{weekday: [{"start": "HH:MM", "end": "HH:MM"}, ...]}`` map.

    Every interval must be well formed and ordered (start < end).
    """
    if value is None:
        return
    if not isinstance(value, dict):
        raise ValidationError(f'{label} must be an object')
    for day, slots in value.items():
        if str(day).lower() not in WEEKDAYS:
            raise ValidationError(f'Invalid day: {day}')
        if not isinstance(slots, list):
            raise ValidationError(f'{label} for {day} must be an array')
        for slot in slots:
            start = (slot or {}).get('start')
            end = (slot or {}).get('end')
            if not start or not end or not _HHMM.match(str(start)) or not _HHMM.match(str(end)):
                raise ValidationError(f'Invalid time format for {day}')
            if parse_hhmm(start) >= parse_hhmm(end):
                raise ValidationError(f'{label} for {day} must end after they start ({start}-{end})')


def validate_working_days(value):
    if value is None:
        return
    if not isinstance(value, list):
        raise ValidationError('Working days must be an array')
    for day in value:
        if day not in WEEKDAYS:
            raise ValidationError(f'Invalid working day: {day}')


class Teacher(models.Model):
    """A teacher and the weekly window they can be booked in.

    `work_hours` and `break_hours` are wall-clock intervals in the teacher's
    own `timezone`; availability checks convert booking instants into that
    zone before comparing.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='teacher_profile',
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=32, blank=True, default='')
    is_coordinator = models.BooleanField(default=False)
    work_hours = models.JSONField(default=dict, blank=True, validators=[validate_day_intervals])
    break_hours = models.JSONField(default=dict, blank=True, validators=[validate_day_intervals])
    working_days = models.JSONField(default=_default_working_days, blank=True, validators=[validate_working_days])
    max_students_per_day = models.PositiveSmallIntegerField(
        default=8,
        validators=[MinValueValidator(1), MaxValueValidator(20)],
    )
    active = models.BooleanField(default=True, db_index=True)
    timezone = models.CharField(max_length=64, default=_default_timezone, validators=[validate_timezone_name])
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('last_name', 'first_name')

    def __str__(self):
        return f"{self.first_name} {self.last_name}"

    def clean(self):
        validate_day_intervals(self.work_hours, 'Work hours')
        validate_day_intervals(self.break_hours, 'Break hours')
        validate_working_days(self.working_days)
        validate_timezone_name(self.timezone)

    def intervals_for(self, weekday: str, field: str = 'work_hours') -> List[Tuple[time, time]]:
        raw: Dict[str, list] = getattr(self, field) or {}
        slots = raw.get(weekday) or raw.get(weekday.capitalize()) or []
        return [(parse_hhmm(s['start']), parse_hhmm(s['end'])) for s in slots]


class Student(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='student_profile',
    )
    name = models.CharField(max_length=100)
    surname = models.CharField(max_length=100)
    # Whether the student accepts being moved to another teacher on reschedule.
    allow_different_teacher = models.BooleanField(default=False)
    timezone = models.CharField(max_length=64, default=_default_timezone, validators=[validate_timezone_name])
    active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('surname', 'name')

    def __str__(self):
        return f"{self.name} {self.surname}"


class Package(models.Model):
    """Catalog entry: a bundle of class credits students can buy."""
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, default='')
    total_classes = models.PositiveIntegerField()
    duration_months = models.PositiveSmallIntegerField(default=1)
    max_reschedules = models.PositiveSmallIntegerField(default=2)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    active = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.name} ({self.total_classes} classes)"


class StudentPackage(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='packages')
    package = models.ForeignKey(Package, on_delete=models.PROTECT, related_name='student_packages')
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    used_reschedules = models.PositiveSmallIntegerField(default=0)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('-start_date',)
        constraints = [
            models.CheckConstraint(condition=models.Q(end_date__gte=models.F('start_date')), name='student_package_end_after_start'),
        ]

    def __str__(self):
        return f"{self.student} - {self.package.name} ({self.start_date} .. {self.end_date})"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError('Package end date must not be before its start date')

    @property
    def credits_granted(self) -> int:
        return self.package.total_classes

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date
