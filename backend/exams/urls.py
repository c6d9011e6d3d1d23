from django.urls import path

from exams.views import (
    AssignmentCompleteView,
    AssignmentReviewView,
    ExamAssignView,
    ExamCreateView,
    ExamDetailView,
)

urlpatterns = [
    path('', ExamCreateView.as_view(), name='exam-create'),
    path('<int:id>/', ExamDetailView.as_view(), name='exam-detail'),
    path('assignments/', ExamAssignView.as_view(), name='exam-assign'),
    path('assignments/<int:id>/complete/', AssignmentCompleteView.as_view(), name='exam-assignment-complete'),
    path('assignments/<int:id>/review/', AssignmentReviewView.as_view(), name='exam-assignment-review'),
]
