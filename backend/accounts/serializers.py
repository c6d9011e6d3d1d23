from typing import Optional

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.tokens import RefreshToken

User = get_user_model()


def _profile_ids(user) -> dict:
    """Return the teacher/student profile ids linked to *user* (if any)."""
    ids = {}
    teacher = getattr(user, 'teacher_profile', None)
    if teacher is not None:
        ids['teacherId'] = teacher.pk
    student = getattr(user, 'student_profile', None)
    if student is not None:
        ids['studentId'] = student.pk
    return ids


def tokens_for_user(user) -> RefreshToken:
    """Build a refresh token carrying the claims the frontend gates pages on."""
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    refresh['isCoordinator'] = bool(user.is_coordinator)
    refresh['timezone'] = user.timezone
    for claim, value in _profile_ids(user).items():
        refresh[claim] = value
    return refresh


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'role', 'is_coordinator', 'timezone')
        read_only_fields = fields


class IdentifierTokenObtainPairSerializer(serializers.Serializer):
    """Authenticate using `identifier` (username or email) + `password` and return a JWT pair."""
    identifier = serializers.CharField(write_only=True)
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        identifier = attrs.get('identifier')
        password = attrs.get('password')

        if not identifier or not password:
            raise serializers.ValidationError('Must include "identifier" and "password".')

        user: Optional[User] = None
        if '@' in identifier:
            user = User.objects.filter(email__iexact=identifier).first()
        if user is None:
            user = User.objects.filter(username__iexact=identifier).first()

        # generic error message to avoid leaking which part failed
        invalid_msg = 'Unable to log in with provided credentials.'

        if user is None or not user.check_password(password):
            raise serializers.ValidationError(invalid_msg)

        if not getattr(user, 'is_active', True):
            raise serializers.ValidationError('User account is disabled.')

        refresh = tokens_for_user(user)
        return {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
            'user': UserSerializer(user).data,
        }
