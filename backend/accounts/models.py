from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


def _default_timezone():
    return getattr(settings, 'ADMIN_TIMEZONE', 'UTC')


class User(AbstractUser):
    """
    Base user model.
    Admins, coordinators, teachers and students are all users; the `role`
    claim decides which scheduling and exam operations they may invoke.
    """

    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        COORDINATOR = 'coordinator', 'Coordinator'
        TEACHER = 'teacher', 'Teacher'
        STUDENT = 'student', 'Student'

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT, db_index=True)
    # Teachers may coordinate without switching role.
    is_coordinator = models.BooleanField(default=False)
    timezone = models.CharField(max_length=64, default=_default_timezone)

    def __str__(self):
        return self.username

    @property
    def can_coordinate(self) -> bool:
        return self.role in (self.Role.ADMIN, self.Role.COORDINATOR) or bool(self.is_coordinator)
