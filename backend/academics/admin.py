from django.contrib import admin

from .models import Teacher, Student, Package, StudentPackage


@admin.register(Teacher)
class TeacherAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'timezone', 'max_students_per_day', 'is_coordinator', 'active')
    list_filter = ('active', 'is_coordinator', 'timezone')
    search_fields = ('first_name', 'last_name', 'user__username', 'user__email')


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('name', 'surname', 'timezone', 'allow_different_teacher', 'active')
    list_filter = ('active', 'allow_different_teacher')
    search_fields = ('name', 'surname', 'user__username', 'user__email')


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ('name', 'total_classes', 'duration_months', 'max_reschedules', 'price', 'active')
    list_filter = ('active',)


@admin.register(StudentPackage)
class StudentPackageAdmin(admin.ModelAdmin):
    list_display = ('student', 'package', 'start_date', 'end_date', 'status', 'used_reschedules')
    list_filter = ('status', 'package')
    search_fields = ('student__name', 'student__surname')
    date_hierarchy = 'start_date'
