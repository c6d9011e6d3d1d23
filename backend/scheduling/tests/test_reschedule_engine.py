from datetime import date, timedelta
from unittest import mock

from django.core.exceptions import ValidationError as ModelValidationError
from django.test import TestCase

from scheduling import policies
from scheduling.models import RescheduledClass, ScheduledClass, TeacherStudentBinding
from scheduling.services import binding_registry, entitlement, reschedule_engine
from scheduling.tests.factories import MONDAY, NOW, at, fill_day, make_class, make_package, make_student, make_teacher
from tutoring.exceptions import (
    CLASS_NOT_RESCHEDULABLE,
    DUPLICATE_BINDING,
    PACKAGE_NOT_ELIGIBLE,
    SLOT_UNAVAILABLE,
    TEACHER_CHANGE_NOT_PERMITTED,
    ConflictError,
    PolicyViolation,
    ValidationError,
)

TUESDAY = MONDAY + timedelta(days=1)


class RescheduleEngineTests(TestCase):
    def setUp(self):
        self.teacher_a = make_teacher(first_name='Ana')
        self.teacher_b = make_teacher(first_name='Bea')
        self.student = make_student()
        self.package = make_package(self.student)
        self.klass = make_class(self.student, self.teacher_a, at(TUESDAY, 10), student_package=self.package)
        binding_registry.bind(self.teacher_a.pk, self.student.pk)

    def _snapshot(self):
        self.klass.refresh_from_db()
        return (self.klass.teacher_id, self.klass.starts_at, self.klass.ends_at, self.klass.version)

    def test_same_teacher_move(self):
        record = reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW, reason='dentist')
        self.klass.refresh_from_db()
        self.assertEqual(self.klass.starts_at, at(TUESDAY, 14))
        self.assertEqual(self.klass.ends_at, at(TUESDAY, 15))
        self.assertEqual(self.klass.version, 2)
        self.assertFalse(record.different_teacher)
        self.assertEqual(record.teacher_change, RescheduledClass.TeacherChange.SAME)
        self.assertEqual(record.old_starts_at, at(TUESDAY, 10))
        self.assertEqual(record.reason, 'dentist')
        self.package.refresh_from_db()
        self.assertEqual(self.package.used_reschedules, 1)

    def test_teacher_change_not_permitted(self):
        before = self._snapshot()
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), self.teacher_b.pk, now=NOW)
        self.assertEqual(ctx.exception.reason, TEACHER_CHANGE_NOT_PERMITTED)
        self.assertEqual(self._snapshot(), before)
        self.assertFalse(RescheduledClass.objects.exists())

    def test_requesting_current_teacher_is_same_teacher_move(self):
        record = reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), self.teacher_a.pk, now=NOW)
        self.assertFalse(record.different_teacher)

    def test_different_teacher_updates_binding(self):
        self.student.allow_different_teacher = True
        self.student.save()
        record = reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), self.teacher_b.pk, now=NOW)
        self.assertTrue(record.different_teacher)
        self.assertEqual(record.old_teacher, self.teacher_a)
        self.assertEqual(record.new_teacher, self.teacher_b)
        self.klass.refresh_from_db()
        self.assertEqual(self.klass.teacher, self.teacher_b)
        self.assertEqual(binding_registry.current_teacher(self.student.pk), self.teacher_b)
        self.assertEqual(TeacherStudentBinding.objects.filter(student=self.student, active=True).count(), 1)

    def test_move_there_and_back_writes_two_rows(self):
        reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)
        reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 10), at(TUESDAY, 11), now=NOW)
        self.assertEqual(RescheduledClass.objects.filter(scheduled_class=self.klass).count(), 2)
        self.klass.refresh_from_db()
        self.assertEqual(self.klass.starts_at, at(TUESDAY, 10))
        self.assertEqual(self.klass.version, 3)

    def test_identical_slot_still_audited(self):
        reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 10), at(TUESDAY, 11), now=NOW)
        self.assertEqual(RescheduledClass.objects.filter(scheduled_class=self.klass).count(), 1)

    def test_ninth_class_on_full_monday(self):
        fill_day(self.teacher_a, MONDAY, 8)
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(MONDAY, 16, 30), at(MONDAY, 17), now=NOW)
        self.assertEqual(ctx.exception.reason, SLOT_UNAVAILABLE)
        self.assertEqual(ctx.exception.detail_reason, policies.DAILY_LIMIT_REACHED)

    def test_no_credits_remaining(self):
        student = make_student(name='Old')
        package = make_package(student, total_classes=1, start=date(2024, 1, 1), end=date(2024, 3, 31))
        klass = make_class(student, self.teacher_a, at(date(2024, 3, 11), 10), student_package=package)
        fill_day(self.teacher_a, date(2024, 3, 20), 8)
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(klass.pk, at(date(2024, 3, 20), 10), at(date(2024, 3, 20), 11), now=at(date(2024, 3, 1), 9))
        self.assertEqual(ctx.exception.reason, PACKAGE_NOT_ELIGIBLE)
        self.assertEqual(ctx.exception.detail_reason, policies.NO_CREDITS_REMAINING)

    def test_package_expired(self):
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(date(2030, 4, 2), 10), at(date(2030, 4, 2), 11), now=NOW)
        self.assertEqual(ctx.exception.detail_reason, policies.PACKAGE_EXPIRED)

    def test_reschedule_quota(self):
        self.package.used_reschedules = 2
        self.package.save()
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)
        self.assertEqual(ctx.exception.reason, PACKAGE_NOT_ELIGIBLE)
        self.assertEqual(ctx.exception.detail_reason, policies.NO_RESCHEDULES_REMAINING)

    def test_slot_taken(self):
        make_class(make_student(name='Other'), self.teacher_a, at(TUESDAY, 14))
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14, 30), at(TUESDAY, 15, 30), now=NOW)
        self.assertEqual(ctx.exception.detail_reason, policies.OVERLAP)

    def test_inactive_target_teacher(self):
        self.student.allow_different_teacher = True
        self.student.save()
        self.teacher_b.active = False
        self.teacher_b.save()
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), self.teacher_b.pk, now=NOW)
        self.assertEqual(ctx.exception.reason, SLOT_UNAVAILABLE)

    def test_minimum_notice(self):
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=at(TUESDAY, 9))
        self.assertEqual(ctx.exception.reason, CLASS_NOT_RESCHEDULABLE)

    def test_new_slot_in_the_past(self):
        before = self._snapshot()
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(MONDAY, 14), at(MONDAY, 15), now=at(TUESDAY, 7))
        self.assertEqual(ctx.exception.reason, CLASS_NOT_RESCHEDULABLE)
        self.assertEqual(ctx.exception.detail_reason, policies.NEW_SLOT_TOO_SOON)
        self.assertEqual(self._snapshot(), before)
        self.package.refresh_from_db()
        self.assertEqual(self.package.used_reschedules, 0)

    def test_new_slot_inside_notice_window(self):
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 9), at(TUESDAY, 10), now=at(TUESDAY, 8))
        self.assertEqual(ctx.exception.detail_reason, policies.NEW_SLOT_TOO_SOON)

    def test_move_into_next_package_moves_the_credit(self):
        student = make_student(name='Pat')
        january = make_package(student, start=date(2030, 1, 1), end=date(2030, 1, 31))
        spring = make_package(student, start=date(2030, 2, 1), end=date(2030, 3, 31))
        klass = make_class(student, self.teacher_a, at(TUESDAY, 10), student_package=january)
        binding_registry.bind(self.teacher_a.pk, student.pk)

        new_day = date(2030, 2, 5)
        record = reschedule_engine.reschedule(klass.pk, at(new_day, 10), at(new_day, 11), now=NOW)

        klass.refresh_from_db()
        self.assertEqual(record.student_package, spring)
        self.assertEqual(klass.student_package, spring)
        self.assertEqual(entitlement.credits_consumed(january), 0)
        self.assertEqual(entitlement.credits_consumed(spring), 1)
        spring.refresh_from_db()
        self.assertEqual(spring.used_reschedules, 1)

    def test_move_into_full_package_refused(self):
        student = make_student(name='Pat')
        january = make_package(student, start=date(2030, 1, 1), end=date(2030, 1, 31))
        spring = make_package(student, total_classes=1, start=date(2030, 2, 1), end=date(2030, 3, 31))
        klass = make_class(student, self.teacher_a, at(TUESDAY, 10), student_package=january)
        make_class(student, self.teacher_b, at(date(2030, 2, 12), 10), student_package=spring)
        binding_registry.bind(self.teacher_a.pk, student.pk)

        # the entitlement read happens before the package lock, so hand it a stale verdict
        stale = entitlement.Entitlement(True, None, spring)
        new_day = date(2030, 2, 5)
        with mock.patch.object(entitlement, 'can_schedule_on', return_value=stale):
            with self.assertRaises(PolicyViolation) as ctx:
                reschedule_engine.reschedule(klass.pk, at(new_day, 10), at(new_day, 11), now=NOW)
        self.assertEqual(ctx.exception.detail_reason, policies.NO_CREDITS_REMAINING)
        klass.refresh_from_db()
        self.assertEqual(klass.student_package, january)

    def test_cancelled_class_cannot_move(self):
        ScheduledClass.objects.filter(pk=self.klass.pk).update(status=ScheduledClass.Status.CANCELLED)
        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)
        self.assertEqual(ctx.exception.reason, CLASS_NOT_RESCHEDULABLE)

    def test_failed_binding_aborts_everything(self):
        self.student.allow_different_teacher = True
        self.student.save()
        policy = binding_registry.PermanentPairPolicy()
        # pair B/student existed before, so the permanent policy refuses it
        TeacherStudentBinding.objects.create(teacher=self.teacher_b, student=self.student, assigned_at=NOW, active=False)
        before = self._snapshot()

        with self.assertRaises(PolicyViolation) as ctx:
            reschedule_engine.reschedule(
                self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), self.teacher_b.pk, now=NOW, binding_policy=policy,
            )
        self.assertEqual(ctx.exception.reason, DUPLICATE_BINDING)
        self.assertEqual(self._snapshot(), before)
        self.assertFalse(RescheduledClass.objects.exists())
        self.package.refresh_from_db()
        self.assertEqual(self.package.used_reschedules, 0)
        self.assertEqual(binding_registry.current_teacher(self.student.pk), self.teacher_a)

    def test_stale_expected_version(self):
        with self.assertRaises(ConflictError):
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW, expected_version=7)
        self.assertFalse(RescheduledClass.objects.exists())

    def test_matching_expected_version(self):
        reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW, expected_version=1)
        self.klass.refresh_from_db()
        self.assertEqual(self.klass.version, 2)

    def test_conflict_retried_once(self):
        real = reschedule_engine._reschedule_once
        calls = []

        def flaky(*args):
            calls.append(args)
            if len(calls) == 1:
                raise ConflictError()
            return real(*args)

        with mock.patch.object(reschedule_engine, '_reschedule_once', side_effect=flaky):
            record = reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)
        self.assertEqual(len(calls), 2)
        self.assertEqual(record.new_starts_at, at(TUESDAY, 14))

    def test_repeated_conflict_escalates(self):
        with mock.patch.object(reschedule_engine, '_reschedule_once', side_effect=ConflictError()) as once:
            with self.assertRaises(ConflictError):
                reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)
        self.assertEqual(once.call_count, 2)

    def test_malformed_window(self):
        with self.assertRaises(ValidationError):
            reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 15), at(TUESDAY, 14), now=NOW)
        with self.assertRaises(ValidationError):
            reschedule_engine.reschedule(None, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)

    def test_audit_rows_are_immutable(self):
        record = reschedule_engine.reschedule(self.klass.pk, at(TUESDAY, 14), at(TUESDAY, 15), now=NOW)
        record.reason = 'edited'
        with self.assertRaises(ModelValidationError):
            record.save()
        with self.assertRaises(ModelValidationError):
            record.delete()
        self.assertEqual(RescheduledClass.objects.get(pk=record.pk).reason, '')

    def test_classes_are_never_deleted(self):
        with self.assertRaises(ModelValidationError):
            self.klass.delete()
