from django.urls import path

from scheduling.views import (
    BookClassView,
    CancelClassView,
    ClassRescheduleHistoryView,
    RescheduleView,
    TeacherAvailabilityView,
    TeacherAvailableDatesView,
    TeacherAvailableSlotsView,
    TeacherBindingView,
)

urlpatterns = [
    path('reschedule/', RescheduleView.as_view(), name='reschedule'),
    path('classes/', BookClassView.as_view(), name='class-book'),
    path('classes/<int:id>/cancel/', CancelClassView.as_view(), name='class-cancel'),
    path('classes/<int:id>/reschedules/', ClassRescheduleHistoryView.as_view(), name='class-reschedules'),
    path('teacher-binding/', TeacherBindingView.as_view(), name='teacher-binding'),
    path('teachers/<int:id>/availability/', TeacherAvailabilityView.as_view(), name='teacher-availability'),
    path('teachers/<int:id>/available-slots/', TeacherAvailableSlotsView.as_view(), name='teacher-available-slots'),
    path('teachers/<int:id>/available-dates/', TeacherAvailableDatesView.as_view(), name='teacher-available-dates'),
]
