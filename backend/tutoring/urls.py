from django.contrib import admin
from django.urls import path, include
from django.views.generic import RedirectView

import tutoring.admin_customization  # noqa: F401

urlpatterns = [
    path('', RedirectView.as_view(url='/admin/', permanent=False), name='dashboard'),
    path('admin/', admin.site.urls),
    path('api/auth/', include('accounts.urls')),
    path('api/scheduling/', include('scheduling.urls')),
    path('api/exams/', include('exams.urls')),
]
