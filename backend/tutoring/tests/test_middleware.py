from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, SimpleTestCase, override_settings
from rest_framework.response import Response

from tutoring.middleware import SlowRequestLoggingMiddleware


class RequestLoggingTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def _run(self, response, path='/api/scheduling/reschedule/'):
        request = self.factory.post(path)
        request.user = AnonymousUser()
        return SlowRequestLoggingMiddleware(lambda req: response)(request)

    def test_policy_refusal_logged_with_reason(self):
        refused = Response({'kind': 'PolicyViolation', 'reason': 'SlotUnavailable', 'detail_reason': 'Overlap'}, status=409)
        with self.assertLogs('django.request', level='INFO') as logs:
            self.assertIs(self._run(refused), refused)
        self.assertIn('kind=PolicyViolation reason=Overlap', logs.output[0])
        self.assertIn('route=/api/scheduling/reschedule/', logs.output[0])

    @override_settings(SLOW_REQUEST_LOG_MS=0)
    def test_slow_request_warning(self):
        with self.assertLogs('django.request', level='WARNING') as logs:
            self._run(Response({'ok': True}))
        self.assertIn('SLOW_REQUEST method=POST', logs.output[0])
        self.assertIn('user=anonymous', logs.output[0])

    @override_settings(SLOW_REQUEST_LOG_MS=60000)
    def test_fast_success_is_quiet(self):
        with self.assertNoLogs('django.request', level='INFO'):
            self._run(Response({'ok': True}))
