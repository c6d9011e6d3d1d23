import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ScheduledClass',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(default='Individual Class', max_length=200)),
                ('starts_at', models.DateTimeField(db_index=True)),
                ('ends_at', models.DateTimeField(db_index=True)),
                ('duration_minutes', models.PositiveIntegerField(default=60)),
                ('timezone', models.CharField(default='UTC', max_length=64)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], db_index=True, default='scheduled', max_length=20)),
                ('version', models.PositiveIntegerField(default=1)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='classes', to='academics.student')),
                ('student_package', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='classes', to='academics.studentpackage')),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='classes', to='academics.teacher')),
            ],
            options={
                'ordering': ('starts_at',),
                'indexes': [models.Index(fields=['teacher', 'starts_at'], name='scheduled_class_teacher_idx')],
            },
        ),
        migrations.CreateModel(
            name='TeacherStudentBinding',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('assigned_at', models.DateTimeField()),
                ('active', models.BooleanField(db_index=True, default=True)),
                ('weekly_schedule', models.JSONField(blank=True, default=list)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='teacher_bindings', to='academics.student')),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='student_bindings', to='academics.teacher')),
            ],
            options={
                'db_table': 'teacher_student_bindings',
                'constraints': [models.UniqueConstraint(fields=('teacher', 'student'), name='unique_teacher_student')],
            },
        ),
        migrations.CreateModel(
            name='RescheduledClass',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('teacher_change', models.CharField(choices=[('same', 'Same teacher'), ('different', 'Different teacher')], max_length=10)),
                ('old_starts_at', models.DateTimeField()),
                ('old_ends_at', models.DateTimeField()),
                ('new_starts_at', models.DateTimeField()),
                ('new_ends_at', models.DateTimeField()),
                ('timezone', models.CharField(default='UTC', max_length=64)),
                ('reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('new_teacher', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reschedules_to', to='academics.teacher')),
                ('old_teacher', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reschedules_from', to='academics.teacher')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='requested_reschedules', to=settings.AUTH_USER_MODEL)),
                ('scheduled_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reschedules', to='scheduling.scheduledclass')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reschedules', to='academics.student')),
                ('student_package', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reschedules', to='academics.studentpackage')),
            ],
            options={
                'db_table': 'rescheduled_classes',
                'ordering': ('created_at', 'id'),
            },
        ),
    ]
