from django.contrib import admin

from . import models


class ExamAssignmentInline(admin.TabularInline):
    model = models.ExamAssignment
    extra = 0
    can_delete = False
    fields = ('teacher', 'status', 'assigned_at', 'completed_at', 'reviewed_at', 'review_notes')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


class ExamAdmin(admin.ModelAdmin):
    list_display = ('title', 'created_by', 'status', 'due_date', 'completed_at', 'reviewed_at')
    list_filter = ('status',)
    search_fields = ('title',)
    readonly_fields = ('status', 'assigned_to', 'completed_at', 'reviewed_at', 'review_notes', 'created_at', 'updated_at')
    inlines = (ExamAssignmentInline,)


admin.site.register(models.Exam, ExamAdmin)
