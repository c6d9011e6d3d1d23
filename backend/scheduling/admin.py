from django.contrib import admin

from . import models


class RescheduledClassInline(admin.TabularInline):
    model = models.RescheduledClass
    fk_name = 'scheduled_class'
    extra = 0
    can_delete = False
    fields = ('old_teacher', 'new_teacher', 'teacher_change', 'old_starts_at', 'new_starts_at', 'reason', 'created_at')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class ScheduledClassAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'teacher', 'starts_at', 'duration_minutes', 'status', 'version')
    list_filter = ('status', 'teacher')
    search_fields = ('student__name', 'student__surname', 'teacher__first_name', 'teacher__last_name')
    date_hierarchy = 'starts_at'
    readonly_fields = ('ends_at', 'version', 'created_at', 'updated_at')
    inlines = (RescheduledClassInline,)

    def has_delete_permission(self, request, obj=None):
        return False


class RescheduledClassAdmin(admin.ModelAdmin):
    list_display = ('id', 'scheduled_class', 'old_teacher', 'new_teacher', 'teacher_change', 'new_starts_at', 'created_at')
    list_filter = ('teacher_change',)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class TeacherStudentBindingAdmin(admin.ModelAdmin):
    list_display = ('teacher', 'student', 'assigned_at', 'active')
    list_filter = ('active',)
    search_fields = ('teacher__first_name', 'teacher__last_name', 'student__name', 'student__surname')
    readonly_fields = ('created_at', 'updated_at')


admin.site.register(models.ScheduledClass, ScheduledClassAdmin)
admin.site.register(models.RescheduledClass, RescheduledClassAdmin)
admin.site.register(models.TeacherStudentBinding, TeacherStudentBindingAdmin)
