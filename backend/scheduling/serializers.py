from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.utils.dateparse import parse_datetime
from rest_framework import serializers

from scheduling.models import RescheduledClass, ScheduledClass, TeacherStudentBinding


def parse_instant(value, tz_name=None, field='starts_at'):
    """Parse an ISO datetime. Naive values are read as wall-clock time in `tz_name`."""
    parsed = parse_datetime(str(value)) if value not in (None, '') else None
    if parsed is None:
        raise serializers.ValidationError({field: 'Expected an ISO 8601 datetime.'})
    if parsed.tzinfo is None:
        if not tz_name:
            raise serializers.ValidationError({field: 'Datetime has no offset; pass an offset or a timezone.'})
        try:
            zone = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise serializers.ValidationError({'timezone': f'Unknown timezone: {tz_name}'})
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _validate_tz(value):
    if not value:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise serializers.ValidationError(f'Unknown timezone: {value}')
    return value


class RescheduleRequestSerializer(serializers.Serializer):
    class_id = serializers.IntegerField()
    starts_at = serializers.CharField()
    ends_at = serializers.CharField(required=False, allow_blank=True)
    duration_minutes = serializers.IntegerField(required=False, min_value=1)
    timezone = serializers.CharField(required=False, allow_blank=True, validators=[_validate_tz])
    requested_teacher_id = serializers.IntegerField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    expected_version = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        tz_name = attrs.get('timezone') or None
        attrs['starts_at'] = parse_instant(attrs['starts_at'], tz_name)
        if attrs.get('ends_at'):
            attrs['ends_at'] = parse_instant(attrs['ends_at'], tz_name, field='ends_at')
        elif attrs.get('duration_minutes'):
            attrs['ends_at'] = attrs['starts_at'] + timedelta(minutes=attrs['duration_minutes'])
        else:
            raise serializers.ValidationError({'ends_at': 'Provide ends_at or duration_minutes.'})
        return attrs


class BookClassSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    teacher_id = serializers.IntegerField()
    starts_at = serializers.CharField()
    duration_minutes = serializers.IntegerField(required=False, min_value=1, default=60)
    timezone = serializers.CharField(required=False, allow_blank=True, validators=[_validate_tz])
    title = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        attrs['starts_at'] = parse_instant(attrs['starts_at'], attrs.get('timezone') or None)
        return attrs


class BindingRequestSerializer(serializers.Serializer):
    teacher_id = serializers.IntegerField()
    student_id = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    weekly_schedule = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    # DELETE only: remove the row instead of deactivating it
    purge = serializers.BooleanField(required=False, default=False)


class ScheduledClassSerializer(serializers.ModelSerializer):
    class Meta:
        model = ScheduledClass
        fields = (
            'id', 'student', 'teacher', 'student_package', 'title', 'starts_at', 'ends_at',
            'duration_minutes', 'timezone', 'status', 'version', 'notes',
        )
        read_only_fields = fields


class RescheduledClassSerializer(serializers.ModelSerializer):
    different_teacher = serializers.BooleanField(read_only=True)
    old_teacher_name = serializers.CharField(source='old_teacher.__str__', read_only=True)
    new_teacher_name = serializers.CharField(source='new_teacher.__str__', read_only=True)

    class Meta:
        model = RescheduledClass
        fields = (
            'id', 'scheduled_class', 'student', 'student_package', 'old_teacher', 'old_teacher_name',
            'new_teacher', 'new_teacher_name', 'teacher_change', 'different_teacher',
            'old_starts_at', 'old_ends_at', 'new_starts_at', 'new_ends_at', 'timezone', 'reason',
            'requested_by', 'created_at',
        )
        read_only_fields = fields


class TeacherStudentBindingSerializer(serializers.ModelSerializer):
    class Meta:
        model = TeacherStudentBinding
        fields = ('id', 'teacher', 'student', 'assigned_at', 'active', 'weekly_schedule', 'notes')
        read_only_fields = fields
