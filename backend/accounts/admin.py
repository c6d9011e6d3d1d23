from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ('username', 'email', 'role', 'is_coordinator', 'timezone', 'is_active')
    list_filter = ('role', 'is_coordinator', 'is_active')
    fieldsets = DjangoUserAdmin.fieldsets + (
        ('Academy', {'fields': ('role', 'is_coordinator', 'timezone')}),
    )
