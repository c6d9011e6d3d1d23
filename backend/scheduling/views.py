from datetime import date

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions_api import IsAdminRole, is_admin, profile_id
from academics.models import Teacher
from scheduling.models import ScheduledClass
from scheduling.serializers import (
    BindingRequestSerializer,
    BookClassSerializer,
    RescheduledClassSerializer,
    RescheduleRequestSerializer,
    ScheduledClassSerializer,
    TeacherStudentBindingSerializer,
    parse_instant,
)
from scheduling.services import availability, binding_registry, booking, reschedule_engine
from tutoring.exceptions import ValidationError


def _parse_date(value, field):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a YYYY-MM-DD date', reason='InvalidDate')


class RescheduleView(APIView):
    """Admins may move any class; students only their own."""
    permission_classes = (IsAuthenticated,)

    def post(self, request, *args, **kwargs):
        serializer = RescheduleRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        scheduled_class = get_object_or_404(ScheduledClass, pk=data['class_id'])
        if not is_admin(request.user) and profile_id(request.user, 'student_profile') != scheduled_class.student_id:
            raise PermissionDenied('You can only reschedule your own classes')

        record = reschedule_engine.reschedule(
            data['class_id'],
            data['starts_at'],
            data['ends_at'],
            data.get('requested_teacher_id'),
            requested_by=request.user,
            reason=data.get('reason', ''),
            timezone_name=data.get('timezone') or None,
            expected_version=data.get('expected_version'),
        )
        scheduled_class.refresh_from_db()
        return Response(
            {
                'reschedule': RescheduledClassSerializer(record).data,
                'class': ScheduledClassSerializer(scheduled_class).data,
            },
            status=status.HTTP_201_CREATED,
        )


class ClassRescheduleHistoryView(APIView):
    permission_classes = (IsAuthenticated,)

    def get(self, request, id: int, *args, **kwargs):
        scheduled_class = get_object_or_404(ScheduledClass, pk=id)
        user = request.user
        allowed = (
            is_admin(user)
            or profile_id(user, 'student_profile') == scheduled_class.student_id
            or profile_id(user, 'teacher_profile') == scheduled_class.teacher_id
        )
        if not allowed:
            raise PermissionDenied('Not authorized to view this class')
        rows = reschedule_engine.history(id)
        return Response(RescheduledClassSerializer(rows, many=True).data)


class BookClassView(APIView):
    permission_classes = (IsAdminRole,)

    def post(self, request, *args, **kwargs):
        serializer = BookClassSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        scheduled_class = booking.schedule_class(
            data['student_id'],
            data['teacher_id'],
            data['starts_at'],
            data['duration_minutes'],
            timezone_name=data.get('timezone') or None,
            title=data.get('title', ''),
            notes=data.get('notes', ''),
        )
        return Response(ScheduledClassSerializer(scheduled_class).data, status=status.HTTP_201_CREATED)


class CancelClassView(APIView):
    permission_classes = (IsAdminRole,)

    def post(self, request, id: int, *args, **kwargs):
        scheduled_class = booking.cancel_class(id)
        return Response(ScheduledClassSerializer(scheduled_class).data)


class TeacherBindingView(APIView):
    permission_classes = (IsAdminRole,)

    def post(self, request, *args, **kwargs):
        serializer = BindingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        binding = binding_registry.bind(
            data['teacher_id'],
            data['student_id'],
            notes=data.get('notes', ''),
            weekly_schedule=data.get('weekly_schedule'),
        )
        return Response(TeacherStudentBindingSerializer(binding).data, status=status.HTTP_201_CREATED)

    def delete(self, request, *args, **kwargs):
        serializer = BindingRequestSerializer(data=request.data or request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data.get('purge'):
            binding_registry.purge(data['teacher_id'], data['student_id'])
        else:
            binding_registry.unbind(data['teacher_id'], data['student_id'])
        return Response(status=status.HTTP_204_NO_CONTENT)


class TeacherAvailabilityView(APIView):
    permission_classes = (IsAuthenticated,)

    def get(self, request, id: int, *args, **kwargs):
        teacher = get_object_or_404(Teacher, pk=id)
        tz_name = request.query_params.get('timezone') or teacher.timezone
        start = parse_instant(request.query_params.get('start'), tz_name, field='start')
        end = parse_instant(request.query_params.get('end'), tz_name, field='end')
        result = availability.check_availability(teacher, start, end)
        return Response({'teacher': teacher.pk, 'available': result.available, 'reason': result.reason})


class TeacherAvailableSlotsView(APIView):
    permission_classes = (IsAuthenticated,)

    def get(self, request, id: int, *args, **kwargs):
        teacher = get_object_or_404(Teacher, pk=id)
        day = _parse_date(request.query_params.get('date'), 'date')
        try:
            duration = int(request.query_params.get('duration', 60))
        except ValueError:
            raise ValidationError('duration must be an integer', reason='InvalidDuration')
        slots = availability.available_slots(teacher, day, duration)
        return Response({
            'teacher': teacher.pk,
            'date': day.isoformat(),
            'timezone': teacher.timezone,
            'slots': [{'start': s.start.isoformat(), 'end': s.end.isoformat()} for s in slots],
        })


class TeacherAvailableDatesView(APIView):
    permission_classes = (IsAuthenticated,)

    def get(self, request, id: int, *args, **kwargs):
        teacher = get_object_or_404(Teacher, pk=id)
        start = _parse_date(request.query_params.get('start'), 'start')
        end = _parse_date(request.query_params.get('end'), 'end')
        days = availability.available_dates(teacher, start, end)
        return Response({'teacher': teacher.pk, 'dates': [d.isoformat() for d in days]})
