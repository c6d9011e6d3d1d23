from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings

from academics.models import Student, Teacher
from scheduling.models import TeacherStudentBinding
from scheduling.services import binding_registry
from scheduling.tests.factories import NINE_TO_FIVE, make_student, make_teacher
from tutoring.exceptions import DUPLICATE_BINDING, NOT_FOUND, TEACHER_INACTIVE, PolicyViolation


class BindingRegistryTests(TestCase):
    def setUp(self):
        self.teacher = Teacher.objects.create(pk=5, first_name='Ana', last_name='T', timezone='UTC', work_hours=NINE_TO_FIVE)
        self.student = Student.objects.create(pk=9, name='Sam', surname='S', timezone='UTC')

    def test_bind_twice_is_duplicate(self):
        binding_registry.bind(5, 9)
        with self.assertRaises(PolicyViolation) as ctx:
            binding_registry.bind(5, 9)
        self.assertEqual(ctx.exception.reason, DUPLICATE_BINDING)
        self.assertEqual(TeacherStudentBinding.objects.filter(teacher_id=5, student_id=9).count(), 1)

    def test_bind_twice_is_duplicate_under_both_policies(self):
        for policy in (binding_registry.PermanentPairPolicy(), binding_registry.RevivePairPolicy()):
            TeacherStudentBinding.objects.all().delete()
            binding_registry.bind(5, 9, policy=policy)
            with self.assertRaises(PolicyViolation):
                binding_registry.bind(5, 9, policy=policy)

    def test_new_teacher_supersedes_previous(self):
        other = make_teacher(first_name='Bea')
        binding_registry.bind(5, 9)
        binding_registry.bind(other.pk, 9)
        self.assertEqual(binding_registry.current_teacher(9), other)
        self.assertEqual(TeacherStudentBinding.objects.filter(student_id=9, active=True).count(), 1)
        self.assertFalse(TeacherStudentBinding.objects.get(teacher_id=5, student_id=9).active)

    def test_bindings_of_other_students_untouched(self):
        other_student = make_student(name='Zoe')
        binding_registry.bind(5, other_student.pk)
        binding_registry.bind(5, 9)
        self.assertEqual(TeacherStudentBinding.objects.filter(teacher_id=5, active=True).count(), 2)

    def test_unbind_keeps_row(self):
        binding_registry.bind(5, 9)
        binding_registry.unbind(5, 9)
        row = TeacherStudentBinding.objects.get(teacher_id=5, student_id=9)
        self.assertFalse(row.active)
        self.assertIsNone(binding_registry.current_teacher(9))

    def test_unbind_without_live_binding(self):
        with self.assertRaises(PolicyViolation) as ctx:
            binding_registry.unbind(5, 9)
        self.assertEqual(ctx.exception.reason, NOT_FOUND)

    def test_revive_policy_reactivates_row(self):
        first = binding_registry.bind(5, 9, policy=binding_registry.RevivePairPolicy())
        binding_registry.unbind(5, 9)
        again = binding_registry.bind(5, 9, policy=binding_registry.RevivePairPolicy())
        self.assertEqual(first.pk, again.pk)
        self.assertTrue(again.active)

    def test_permanent_policy_refuses_rebind(self):
        policy = binding_registry.PermanentPairPolicy()
        binding_registry.bind(5, 9, policy=policy)
        binding_registry.unbind(5, 9)
        with self.assertRaises(PolicyViolation) as ctx:
            binding_registry.bind(5, 9, policy=policy)
        self.assertEqual(ctx.exception.reason, DUPLICATE_BINDING)
        self.assertFalse(TeacherStudentBinding.objects.get(teacher_id=5, student_id=9).active)

    def test_purge_allows_fresh_bind_under_permanent_policy(self):
        policy = binding_registry.PermanentPairPolicy()
        binding_registry.bind(5, 9, policy=policy)
        binding_registry.purge(5, 9)
        self.assertFalse(TeacherStudentBinding.objects.exists())
        binding_registry.bind(5, 9, policy=policy)
        self.assertEqual(binding_registry.current_teacher(9), self.teacher)

    def test_inactive_teacher_cannot_be_bound(self):
        self.teacher.active = False
        self.teacher.save()
        with self.assertRaises(PolicyViolation) as ctx:
            binding_registry.bind(5, 9)
        self.assertEqual(ctx.exception.reason, TEACHER_INACTIVE)

    def test_unknown_ids(self):
        with self.assertRaises(PolicyViolation):
            binding_registry.bind(404, 9)
        with self.assertRaises(PolicyViolation):
            binding_registry.bind(5, 404)

    @override_settings(SCHEDULING_BINDING_POLICY='permanent')
    def test_policy_from_settings(self):
        self.assertIsInstance(binding_registry.get_policy(), binding_registry.PermanentPairPolicy)

    @override_settings(SCHEDULING_BINDING_POLICY='sometimes')
    def test_unknown_policy_setting(self):
        with self.assertRaises(ImproperlyConfigured):
            binding_registry.get_policy()
