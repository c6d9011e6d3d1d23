from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions_api import HasRole, IsCoordinator, profile_id
from exams.models import Exam
from exams.serializers import (
    AssignSerializer,
    ExamAssignmentSerializer,
    ExamCreateSerializer,
    ExamSerializer,
    ReviewSerializer,
)
from exams.services import assignment_state


class ExamCreateView(APIView):
    permission_classes = (IsCoordinator,)

    def post(self, request, *args, **kwargs):
        serializer = ExamCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        exam = assignment_state.create_exam(
            data['title'],
            created_by=getattr(request.user, 'teacher_profile', None),
            teacher_ids=data.get('teacher_ids', []),
            description=data.get('description', ''),
            due_date=data.get('due_date'),
        )
        return Response(ExamSerializer(exam).data, status=status.HTTP_201_CREATED)


class ExamDetailView(APIView):
    permission_classes = (IsAuthenticated,)

    def get(self, request, id: int, *args, **kwargs):
        exam = get_object_or_404(Exam.objects.prefetch_related('assignments__teacher'), pk=id)
        teacher_id = profile_id(request.user, 'teacher_profile')
        if not getattr(request.user, 'can_coordinate', False) and not exam.assignments.filter(teacher_id=teacher_id).exists():
            raise PermissionDenied('Not authorized to view this exam')
        return Response(ExamSerializer(exam).data)


class ExamAssignView(APIView):
    permission_classes = (IsCoordinator,)

    def post(self, request, *args, **kwargs):
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assignment = assignment_state.assign(serializer.validated_data['exam_id'], serializer.validated_data['teacher_id'])
        return Response(ExamAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)


class AssignmentCompleteView(APIView):
    permission_classes = (HasRole,)
    allowed_roles = ('teacher', 'coordinator')

    def post(self, request, id: int, *args, **kwargs):
        teacher = getattr(request.user, 'teacher_profile', None)
        if teacher is None:
            raise PermissionDenied('Only teachers can complete exams')
        assignment = assignment_state.complete(id, teacher=teacher)
        return Response(ExamAssignmentSerializer(assignment).data)


class AssignmentReviewView(APIView):
    permission_classes = (IsCoordinator,)

    def post(self, request, id: int, *args, **kwargs):
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assignment = assignment_state.review(
            id,
            serializer.validated_data['decision'],
            serializer.validated_data.get('notes', ''),
            reviewer=request.user,
        )
        return Response(ExamAssignmentSerializer(assignment).data)
