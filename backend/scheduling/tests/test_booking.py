from unittest import mock

from django.test import TestCase

from scheduling import policies
from scheduling.models import ScheduledClass
from scheduling.services import booking, entitlement
from scheduling.tests.factories import MONDAY, at, make_package, make_student, make_teacher
from tutoring.exceptions import INVALID_TRANSITION, PACKAGE_NOT_ELIGIBLE, SLOT_UNAVAILABLE, PolicyViolation, ValidationError


class BookingTests(TestCase):
    def setUp(self):
        self.teacher = make_teacher()
        self.student = make_student()
        self.package = make_package(self.student, total_classes=2)

    def test_booking_consumes_a_credit(self):
        klass = booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)
        self.assertEqual(klass.student_package, self.package)
        self.assertEqual(klass.ends_at, at(MONDAY, 11))
        self.assertEqual(entitlement.credits_remaining(self.package), 1)

    def test_double_booking_refused(self):
        booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)
        other = make_student(name='Other')
        make_package(other)
        with self.assertRaises(PolicyViolation) as ctx:
            booking.schedule_class(other.pk, self.teacher.pk, at(MONDAY, 10, 30), 60)
        self.assertEqual(ctx.exception.reason, SLOT_UNAVAILABLE)
        self.assertEqual(ctx.exception.detail_reason, policies.OVERLAP)

    def test_out_of_credits(self):
        booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 9), 60)
        booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)
        with self.assertRaises(PolicyViolation) as ctx:
            booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 11), 60)
        self.assertEqual(ctx.exception.reason, PACKAGE_NOT_ELIGIBLE)
        self.assertEqual(ctx.exception.detail_reason, policies.NO_CREDITS_REMAINING)

    def test_cancel_releases_credit_and_slot(self):
        klass = booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)
        booking.cancel_class(klass.pk)
        klass.refresh_from_db()
        self.assertEqual(klass.status, ScheduledClass.Status.CANCELLED)
        self.assertEqual(entitlement.credits_remaining(self.package), 2)
        booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)

    def test_cancel_twice(self):
        klass = booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)
        booking.cancel_class(klass.pk)
        with self.assertRaises(PolicyViolation) as ctx:
            booking.cancel_class(klass.pk)
        self.assertEqual(ctx.exception.reason, INVALID_TRANSITION)

    def test_invalid_duration(self):
        with self.assertRaises(ValidationError):
            booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 0)

    def test_booking_in_the_past_refused(self):
        with self.assertRaises(PolicyViolation) as ctx:
            booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60, now=at(MONDAY, 12))
        self.assertEqual(ctx.exception.reason, SLOT_UNAVAILABLE)
        self.assertEqual(ctx.exception.detail_reason, policies.NEW_SLOT_TOO_SOON)
        self.assertFalse(ScheduledClass.objects.exists())

    def test_booking_needs_minimum_notice(self):
        with self.assertRaises(PolicyViolation) as ctx:
            booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60, now=at(MONDAY, 9))
        self.assertEqual(ctx.exception.detail_reason, policies.NEW_SLOT_TOO_SOON)
        klass = booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 11), 60, now=at(MONDAY, 9))
        self.assertEqual(klass.starts_at, at(MONDAY, 11))

    def test_last_credit_recounted_under_package_lock(self):
        booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 9), 60)
        booking.schedule_class(self.student.pk, self.teacher.pk, at(MONDAY, 10), 60)
        other_teacher = make_teacher(first_name='Bea')
        # a verdict read before a concurrent booking spent the last credit
        stale = entitlement.Entitlement(True, None, self.package)
        with mock.patch.object(entitlement, 'can_schedule_on', return_value=stale):
            with self.assertRaises(PolicyViolation) as ctx:
                booking.schedule_class(self.student.pk, other_teacher.pk, at(MONDAY, 11), 60)
        self.assertEqual(ctx.exception.reason, PACKAGE_NOT_ELIGIBLE)
        self.assertEqual(ctx.exception.detail_reason, policies.NO_CREDITS_REMAINING)
        self.assertEqual(entitlement.credits_consumed(self.package), 2)
