from rest_framework import serializers

from exams.models import Exam, ExamAssignment
from exams.services.assignment_state import REVIEW_DECISIONS


class ExamAssignmentSerializer(serializers.ModelSerializer):
    teacher_name = serializers.CharField(source='teacher.__str__', read_only=True)

    class Meta:
        model = ExamAssignment
        fields = (
            'id', 'exam', 'teacher', 'teacher_name', 'status', 'assigned_at', 'completed_at',
            'reviewed_at', 'review_notes', 'reviewed_by',
        )
        read_only_fields = fields


class ExamSerializer(serializers.ModelSerializer):
    assignments = ExamAssignmentSerializer(many=True, read_only=True)

    class Meta:
        model = Exam
        fields = (
            'id', 'title', 'description', 'created_by', 'assigned_to', 'status', 'due_date',
            'completed_at', 'reviewed_at', 'review_notes', 'created_at', 'assignments',
        )
        read_only_fields = fields


class ExamCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    due_date = serializers.DateField(required=False, allow_null=True)
    teacher_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class AssignSerializer(serializers.Serializer):
    exam_id = serializers.IntegerField()
    teacher_id = serializers.IntegerField()


class ReviewSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=REVIEW_DECISIONS)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
