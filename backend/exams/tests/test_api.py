from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from academics.models import Teacher
from exams.models import Exam, ExamAssignment


class ExamApiTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.coordinator_user = User.objects.create_user(username='coco', password='pw', role='teacher', is_coordinator=True)
        self.teacher_user = User.objects.create_user(username='tess', password='pw', role='teacher')
        self.other_teacher_user = User.objects.create_user(username='otto', password='pw', role='teacher')
        self.coordinator = Teacher.objects.create(user=self.coordinator_user, first_name='Coco', last_name='C', is_coordinator=True)
        self.teacher = Teacher.objects.create(user=self.teacher_user, first_name='Tess', last_name='T')
        self.other_teacher = Teacher.objects.create(user=self.other_teacher_user, first_name='Otto', last_name='O')
        self.client = APIClient()

    def _create_exam(self):
        self.client.force_authenticate(self.coordinator_user)
        return self.client.post('/api/exams/', {'title': 'Midterm', 'teacher_ids': [self.teacher.pk]}, format='json')

    def test_coordinator_creates_exam(self):
        response = self._create_exam()
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data['created_by'], self.coordinator.pk)
        self.assertEqual(len(response.data['assignments']), 1)

    def test_plain_teacher_cannot_create_or_assign(self):
        self.client.force_authenticate(self.teacher_user)
        self.assertEqual(self.client.post('/api/exams/', {'title': 'X'}, format='json').status_code, 403)
        exam = Exam.objects.create(title='Y')
        body = {'exam_id': exam.pk, 'teacher_id': self.teacher.pk}
        self.assertEqual(self.client.post('/api/exams/assignments/', body, format='json').status_code, 403)

    def test_assign_duplicate(self):
        self._create_exam()
        exam = Exam.objects.get()
        body = {'exam_id': exam.pk, 'teacher_id': self.teacher.pk}
        response = self.client.post('/api/exams/assignments/', body, format='json')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['reason'], 'DuplicateAssignment')

    def test_complete_and_review(self):
        self._create_exam()
        assignment = ExamAssignment.objects.get()

        self.client.force_authenticate(self.other_teacher_user)
        self.assertEqual(self.client.post(f'/api/exams/assignments/{assignment.pk}/complete/').status_code, 403)

        self.client.force_authenticate(self.teacher_user)
        done = self.client.post(f'/api/exams/assignments/{assignment.pk}/complete/')
        self.assertEqual(done.status_code, 200, done.data)
        self.assertEqual(done.data['status'], 'completed')

        again = self.client.post(f'/api/exams/assignments/{assignment.pk}/complete/')
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.data['reason'], 'InvalidTransition')

        self.client.force_authenticate(self.coordinator_user)
        reviewed = self.client.post(
            f'/api/exams/assignments/{assignment.pk}/review/',
            {'decision': 'approved', 'notes': 'Well done'},
            format='json',
        )
        self.assertEqual(reviewed.status_code, 200, reviewed.data)
        self.assertEqual(reviewed.data['status'], 'approved')

        detail = self.client.get(f'/api/exams/{assignment.exam_id}/')
        self.assertEqual(detail.data['status'], 'approved')

    def test_review_requires_valid_decision(self):
        self._create_exam()
        assignment = ExamAssignment.objects.get()
        response = self.client.post(f'/api/exams/assignments/{assignment.pk}/review/', {'decision': 'maybe'}, format='json')
        self.assertEqual(response.status_code, 400)
