"""
Test cases for Course Hive.
Covers grading, the test catalog, the attempt lifecycle, results, courses and materials.
"""
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth.models import User
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from .api.serializers import SafeTestSerializer
from .exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .grading import ObjectiveGradingService
from .models import Attempt, AuditLog, Course, Material, Purchase, UserProfile
from .services import attempts, catalog, LeaderboardService


QUESTIONS = [
    {'text': '2 + 2 = ?', 'options': ['3', '4', '5'], 'correct_index': 1, 'marks': 2},
    {'text': 'Capital of France?', 'options': ['Paris', 'Rome'], 'correct_index': 0,
     'marks': 3, 'negative_marks': 1},
]

API_QUESTIONS = [
    {'text': '2 + 2 = ?', 'options': ['3', '4', '5'], 'correctIndex': 1, 'marks': 2},
    {'text': 'Capital of France?', 'options': ['Paris', 'Rome'], 'correctIndex': 0,
     'marks': 3, 'negativeMarks': 1},
]


def make_user(username, role=UserProfile.Role.USER):
    user = User.objects.create_user(username, f'{username}@test.com', 'pass12345')
    if role != UserProfile.Role.USER:
        user.profile.role = role
        user.profile.save()
    return user


def make_test(owner, **kwargs):
    defaults = {'title': 'Quiz', 'duration_minutes': 10, 'questions': QUESTIONS}
    defaults.update(kwargs)
    return catalog.create_test(owner=owner, **defaults)


class ObjectiveGradingServiceTests(TestCase):
    """Tests for the objective grading service."""

    def setUp(self):
        self.grader = ObjectiveGradingService()

    def test_correct_answer_earns_marks(self):
        result = self.grader.grade_answer(0, QUESTIONS[0], 1)
        self.assertTrue(result.is_correct)
        self.assertEqual(result.marks_obtained, 2)

    def test_wrong_answer_without_negative_marking(self):
        result = self.grader.grade_answer(0, QUESTIONS[0], 2)
        self.assertFalse(result.is_correct)
        self.assertEqual(result.marks_obtained, 0)

    def test_wrong_answer_with_negative_marking(self):
        result = self.grader.grade_answer(1, QUESTIONS[1], 1)
        self.assertEqual(result.marks_obtained, -1)

    def test_skipped_question_is_never_penalised(self):
        result = self.grader.grade_answer(1, QUESTIONS[1], None)
        self.assertFalse(result.is_correct)
        self.assertEqual(result.marks_obtained, 0)

    def test_malformed_selection_is_a_wrong_answer(self):
        for selected in ['0', 0.0, True, 7, -1]:
            result = self.grader.grade_answer(1, QUESTIONS[1], selected)
            self.assertFalse(result.is_correct)
            self.assertEqual(result.marks_obtained, -1)

    def test_missing_marks_default_to_one(self):
        question = {'text': 'q', 'options': ['a', 'b'], 'correct_index': 0}
        self.assertEqual(self.grader.grade_answer(0, question, 0).marks_obtained, 1)

    def test_attempt_total_is_floored_at_zero(self):
        grade = self.grader.grade_attempt(QUESTIONS, [{'question_index': 1, 'selected_index': 1}])
        self.assertEqual(grade.raw_score, -1)
        self.assertEqual(grade.score, 0)
        self.assertEqual(grade.max_score, 5)

    def test_unanswered_questions_are_recorded(self):
        grade = self.grader.grade_attempt(QUESTIONS, [])
        self.assertEqual(len(grade.answers), 2)
        self.assertEqual(grade.answers[0]['selected_index'], None)

    def test_first_answer_for_an_index_wins(self):
        grade = self.grader.grade_attempt(QUESTIONS, [
            {'question_index': 0, 'selected_index': 1},
            {'question_index': 0, 'selected_index': 0},
            {'question_index': 9, 'selected_index': 0},
            'garbage',
        ])
        self.assertEqual(grade.score, 2)

    def test_grading_is_deterministic(self):
        selections = [
            {'question_index': 0, 'selected_index': 1},
            {'question_index': 1, 'selected_index': 1},
        ]
        first = self.grader.grade_attempt(QUESTIONS, selections)
        second = self.grader.grade_attempt(QUESTIONS, selections)
        self.assertEqual(first, second)
        self.assertEqual((first.score, first.max_score), (1, 5))
        self.assertEqual([r.marks_obtained for r in first.results], [2, -1])


class CatalogTests(TestCase):
    """Tests for test authoring and publication."""

    def setUp(self):
        self.admin = make_user('admin1', UserProfile.Role.ADMIN)
        self.other_admin = make_user('admin2', UserProfile.Role.ADMIN)

    def test_total_marks_computed_from_questions(self):
        test = make_test(self.admin)
        self.assertEqual(test.total_marks, 5)
        self.assertEqual(test.questions[1]['negative_marks'], 1)
        self.assertEqual(test.questions[0]['negative_marks'], 0)

    def test_negative_marks_stored_as_magnitude(self):
        questions = [dict(QUESTIONS[1], negative_marks=-2)]
        test = make_test(self.admin, questions=questions)
        self.assertEqual(test.questions[0]['negative_marks'], 2)

    def test_rejects_invalid_input(self):
        bad_inputs = [
            {'questions': []},
            {'questions': [{'text': 'q', 'options': ['only'], 'correct_index': 0}]},
            {'questions': [{'text': 'q', 'options': ['a', 'b'], 'correct_index': 2}]},
            {'questions': [{'text': 'q', 'options': ['a', 'b'], 'correct_index': 0, 'marks': -1}]},
            {'duration_minutes': 0},
            {'title': '   '},
        ]
        for kwargs in bad_inputs:
            with self.assertRaises(ValidationError):
                make_test(self.admin, **kwargs)

    def test_partial_update_only_changes_provided_fields(self):
        test = make_test(self.admin, description='first')
        updated = catalog.update_test(test.id, self.admin, catalog.TestChanges(title='Renamed'))
        self.assertEqual(updated.title, 'Renamed')
        self.assertEqual(updated.description, 'first')
        self.assertEqual(updated.total_marks, 5)

    def test_update_questions_recomputes_total(self):
        test = make_test(self.admin)
        updated = catalog.update_test(
            test.id, self.admin, catalog.TestChanges(questions=[dict(QUESTIONS[0], marks=7)])
        )
        self.assertEqual(updated.total_marks, 7)

    def test_only_owner_can_update_or_delete(self):
        test = make_test(self.admin)
        with self.assertRaises(NotFoundError):
            catalog.update_test(test.id, self.other_admin, catalog.TestChanges(title='x'))
        with self.assertRaises(NotFoundError):
            catalog.delete_test(test.id, self.other_admin)

    def test_delete_removes_attempts(self):
        test = make_test(self.admin)
        learner = make_user('learner')
        attempts.start_attempt(test.id, learner)

        catalog.delete_test(test.id, self.admin)
        self.assertFalse(Attempt.objects.filter(test_id=test.id).exists())

    def test_deleted_test_lists_no_attempts(self):
        test = make_test(self.admin)
        learner = make_user('learner')
        attempt = attempts.start_attempt(test.id, learner)
        attempts.submit_attempt(test.id, attempt.id, learner, [])
        self.assertEqual(len(LeaderboardService.list_attempts_for_test(test.id)), 1)

        catalog.delete_test(test.id, self.admin)
        self.assertEqual(list(LeaderboardService.list_attempts_for_test(test.id)), [])

    def test_unpublished_test_not_listed(self):
        make_test(self.admin, title='Hidden', published=False)
        visible = make_test(self.admin, title='Visible')
        self.assertEqual(list(catalog.list_published_tests()), [visible])
        with self.assertRaises(NotFoundError):
            catalog.get_published_test(visible.id + 1000)

    def test_owned_tests_newest_first(self):
        first = make_test(self.admin, title='First')
        second = make_test(self.admin, title='Second')
        make_test(self.other_admin)
        self.assertEqual(list(catalog.list_owned_tests(self.admin)), [second, first])

    def test_safe_projection_hides_answer_key(self):
        test = make_test(self.admin)
        data = SafeTestSerializer(test).data
        self.assertEqual(data['questions'][0], {
            'questionIndex': 0, 'text': '2 + 2 = ?', 'options': ['3', '4', '5'], 'marks': 2
        })
        for question in data['questions']:
            self.assertNotIn('correctIndex', question)
            self.assertNotIn('negativeMarks', question)


class AttemptEngineTests(TestCase):
    """Tests for the attempt lifecycle."""

    def setUp(self):
        self.admin = make_user('admin1', UserProfile.Role.ADMIN)
        self.learner = make_user('learner')
        self.test = make_test(self.admin)

    def test_start_snapshots_max_score(self):
        attempt = attempts.start_attempt(self.test.id, self.learner)
        self.assertEqual(attempt.status, Attempt.Status.IN_PROGRESS)
        self.assertEqual(attempt.max_score, 5)

        catalog.update_test(self.test.id, self.admin, catalog.TestChanges(questions=[QUESTIONS[0]]))
        outcome = attempts.submit_attempt(self.test.id, attempt.id, self.learner, [])
        self.assertEqual(outcome.max_score, 5)

    def test_new_start_supersedes_in_progress_attempt(self):
        first = attempts.start_attempt(self.test.id, self.learner)
        second = attempts.start_attempt(self.test.id, self.learner)
        self.assertFalse(Attempt.objects.filter(id=first.id).exists())
        self.assertEqual(Attempt.objects.get(id=second.id).status, Attempt.Status.IN_PROGRESS)

    def test_start_locks_the_test_row(self):
        manager = attempts.Test.objects
        with mock.patch.object(manager, 'select_for_update', wraps=manager.select_for_update) as lock:
            attempts.start_attempt(self.test.id, self.learner)
            attempts.start_attempt(self.test.id, self.learner)
        self.assertEqual(lock.call_count, 2)
        self.assertEqual(
            Attempt.objects.filter(test=self.test, user=self.learner, status=Attempt.Status.IN_PROGRESS).count(), 1
        )

    def test_retake_refused_after_submission(self):
        attempt = attempts.start_attempt(self.test.id, self.learner)
        attempts.submit_attempt(self.test.id, attempt.id, self.learner, [])
        with self.assertRaises(ConflictError):
            attempts.start_attempt(self.test.id, self.learner)

    def test_late_submission_is_auto_submitted(self):
        started = timezone.now() - timedelta(minutes=11)
        attempt = attempts.start_attempt(self.test.id, self.learner, now=started)
        outcome = attempts.submit_attempt(
            self.test.id, attempt.id, self.learner,
            [{'question_index': 0, 'selected_index': 1}]
        )
        self.assertTrue(outcome.auto_submitted)
        self.assertEqual(outcome.attempt.status, Attempt.Status.AUTO_SUBMITTED)
        self.assertEqual(outcome.score, 2)
        self.assertGreaterEqual(outcome.attempt.duration_taken_seconds, 660)

    def test_submission_at_deadline_is_on_time(self):
        started = timezone.now()
        attempt = attempts.start_attempt(self.test.id, self.learner, now=started)
        outcome = attempts.submit_attempt(
            self.test.id, attempt.id, self.learner, [], now=started + timedelta(minutes=10)
        )
        self.assertFalse(outcome.auto_submitted)
        self.assertEqual(outcome.attempt.status, Attempt.Status.SUBMITTED)

    def test_foreign_attempt_is_forbidden(self):
        attempt = attempts.start_attempt(self.test.id, self.learner)
        with self.assertRaises(ForbiddenError):
            attempts.submit_attempt(self.test.id, attempt.id, make_user('intruder'), [])

    def test_attempt_of_another_test_is_not_found(self):
        other = make_test(self.admin, title='Other')
        attempt = attempts.start_attempt(self.test.id, self.learner)
        with self.assertRaises(NotFoundError):
            attempts.submit_attempt(other.id, attempt.id, self.learner, [])


class APIBaseTestCase(APITestCase):
    """Shared fixtures: one admin, two learners, one published test."""

    def setUp(self):
        cache.clear()
        self.admin = make_user('admin1', UserProfile.Role.ADMIN)
        self.learner = make_user('learner1')
        self.other_learner = make_user('learner2')
        self.admin_token = Token.objects.create(user=self.admin)
        self.learner_token = Token.objects.create(user=self.learner)
        self.other_token = Token.objects.create(user=self.other_learner)
        self.test = make_test(self.admin, title='Published Quiz')

    def login_as(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')

    def start(self, test_id=None):
        return self.client.post(f'/api/tests/{test_id or self.test.id}/start/')

    def submit(self, attempt_id, answers, test_id=None):
        return self.client.post(
            f'/api/tests/{test_id or self.test.id}/submit/',
            {'attemptId': attempt_id, 'answers': answers},
            format='json'
        )


class TestAuthoringAPITests(APIBaseTestCase):
    """Tests for the admin test endpoints."""

    def test_create_test(self):
        self.login_as(self.admin_token)
        response = self.client.post('/api/tests/', {
            'title': 'Arithmetic', 'durationMinutes': 5, 'questions': API_QUESTIONS
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['test']['totalMarks'], 5)
        self.assertEqual(response.data['test']['questions'][1]['negativeMarks'], 1)

    def test_create_test_validation_envelope(self):
        self.login_as(self.admin_token)
        response = self.client.post('/api/tests/', {
            'title': 'Arithmetic', 'durationMinutes': 5,
            'questions': [{'text': 'q', 'options': ['a'], 'correctIndex': 0}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertIn('questions', response.data['errors'])

    def test_user_cannot_create_test(self):
        self.login_as(self.learner_token)
        response = self.client.post('/api/tests/', {
            'title': 'Arithmetic', 'durationMinutes': 5, 'questions': API_QUESTIONS
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data['success'])

    def test_unauthenticated_request_rejected(self):
        response = self.client.get('/api/tests/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_patch_changes_only_given_fields(self):
        self.login_as(self.admin_token)
        response = self.client.patch(f'/api/tests/{self.test.id}/', {'allowRetake': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['test']['allowRetake'])
        self.assertEqual(response.data['test']['title'], 'Published Quiz')

    def test_non_owner_update_is_not_found(self):
        other_admin = make_user('admin2', UserProfile.Role.ADMIN)
        self.client.force_authenticate(other_admin)
        response = self.client.patch(f'/api/tests/{self.test.id}/', {'title': 'Mine'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_test_cascades_and_audits(self):
        attempts.start_attempt(self.test.id, self.learner)
        self.login_as(self.admin_token)
        response = self.client.delete(f'/api/tests/{self.test.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deletedTest']['title'], 'Published Quiz')
        self.assertEqual(Attempt.objects.count(), 0)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.TEST_DELETE).exists())

    def test_owned_listing_includes_answer_key(self):
        self.login_as(self.admin_token)
        response = self.client.get('/api/tests/?owned=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tests'][0]['questions'][0]['correctIndex'], 1)

    def test_owned_listing_requires_admin(self):
        self.login_as(self.learner_token)
        response = self.client.get('/api/tests/?owned=true')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TestTakingAPITests(APIBaseTestCase):
    """Tests for browsing, starting and submitting tests."""

    def test_published_list_is_safe(self):
        make_test(self.admin, title='Draft', published=False)
        self.login_as(self.learner_token)
        response = self.client.get('/api/tests/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['title'] for t in response.data['tests']], ['Published Quiz'])
        self.assertNotIn('correctIndex', response.data['tests'][0]['questions'][0])

    def test_unpublished_test_not_found(self):
        draft = make_test(self.admin, title='Draft', published=False)
        self.login_as(self.learner_token)
        self.assertEqual(self.client.get(f'/api/tests/{draft.id}/').status_code, status.HTTP_404_NOT_FOUND)
        response = self.start(draft.id)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Test not available.')

    def test_start_returns_safe_test(self):
        self.login_as(self.learner_token)
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attemptId', response.data)
        self.assertEqual(response.data['expiresAt'] - response.data['startedAt'], timedelta(minutes=10))
        self.assertNotIn('correctIndex', response.data['test']['questions'][0])

    def test_submit_scores_answers(self):
        self.login_as(self.learner_token)
        attempt_id = self.start().data['attemptId']
        response = self.submit(attempt_id, [{'questionIndex': 0, 'selectedIndex': 1}])
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], 2)
        self.assertEqual(response.data['maxScore'], 5)
        self.assertFalse(response.data['autoSubmitted'])
        self.assertEqual(response.data['status'], 'submitted')

    def test_negative_marking(self):
        self.login_as(self.learner_token)
        attempt_id = self.start().data['attemptId']
        response = self.submit(attempt_id, [
            {'questionIndex': 0, 'selectedIndex': 1},
            {'questionIndex': 1, 'selectedIndex': 1},
        ])
        self.assertEqual(response.data['score'], 1)

    def test_late_submission_flagged(self):
        attempt = attempts.start_attempt(
            self.test.id, self.learner, now=timezone.now() - timedelta(minutes=30)
        )
        self.login_as(self.learner_token)
        response = self.submit(attempt.id, [])
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['autoSubmitted'])
        self.assertEqual(response.data['status'], 'auto-submitted')

    def test_double_submit_conflicts_and_keeps_score(self):
        self.login_as(self.learner_token)
        attempt_id = self.start().data['attemptId']
        self.submit(attempt_id, [{'questionIndex': 0, 'selectedIndex': 1}])

        response = self.submit(attempt_id, [
            {'questionIndex': 0, 'selectedIndex': 1},
            {'questionIndex': 1, 'selectedIndex': 0},
        ])
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data['success'])
        self.assertEqual(Attempt.objects.get(id=attempt_id).score, 2)

    def test_retake_blocked(self):
        self.login_as(self.learner_token)
        attempt_id = self.start().data['attemptId']
        self.submit(attempt_id, [])
        response = self.start()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_retake_allowed(self):
        test = make_test(self.admin, title='Practice', allow_retake=True)
        self.login_as(self.learner_token)
        first = self.start(test.id).data['attemptId']
        self.submit(first, [], test_id=test.id)
        response = self.start(test.id)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotEqual(response.data['attemptId'], first)

    def test_submit_other_users_attempt_forbidden(self):
        self.login_as(self.learner_token)
        attempt_id = self.start().data['attemptId']
        self.login_as(self.other_token)
        response = self.submit(attempt_id, [])
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_submit_unknown_attempt_not_found(self):
        self.login_as(self.learner_token)
        response = self.submit(99999, [])
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_submit_requires_attempt_id(self):
        self.login_as(self.learner_token)
        response = self.client.post(f'/api/tests/{self.test.id}/submit/', {'answers': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_start_and_submit_are_audited(self):
        self.login_as(self.learner_token)
        attempt_id = self.start().data['attemptId']
        self.submit(attempt_id, [])
        events = set(AuditLog.objects.filter(user=self.learner).values_list('event_type', flat=True))
        self.assertEqual(events, {AuditLog.EventType.TEST_START, AuditLog.EventType.TEST_SUBMIT})

    def test_attempt_requests_are_logged(self):
        self.login_as(self.learner_token)
        with self.assertLogs('coursehive.middleware', level='INFO') as logs:
            self.start()
        self.assertIn('ATTEMPT_START', logs.output[0])


class ResultsAPITests(APIBaseTestCase):
    """Tests for attempt results and leaderboards."""

    def _finish(self, user, answers):
        attempt = attempts.start_attempt(self.test.id, user)
        return attempts.submit_attempt(self.test.id, attempt.id, user, answers).attempt

    def test_owner_reads_attempt(self):
        attempt = self._finish(self.learner, [{'question_index': 0, 'selected_index': 1}])
        self.login_as(self.learner_token)
        response = self.client.get(f'/api/attempts/{attempt.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['attempt']['score'], 2)
        self.assertEqual(response.data['attempt']['answers'][0]['marksObtained'], 2)
        self.assertEqual(response.data['attempt']['test']['title'], 'Published Quiz')

    def test_results_alias(self):
        attempt = self._finish(self.learner, [])
        self.login_as(self.learner_token)
        response = self.client.get(f'/api/results/{attempt.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_other_users_attempt_forbidden(self):
        attempt = self._finish(self.learner, [])
        self.login_as(self.other_token)
        response = self.client.get(f'/api/attempts/{attempt.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_attempt_not_found(self):
        self.login_as(self.learner_token)
        response = self.client.get('/api/attempts/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_leaderboard_orders_by_score(self):
        low = self._finish(self.learner, [])
        high = self._finish(self.other_learner, [
            {'question_index': 0, 'selected_index': 1},
            {'question_index': 1, 'selected_index': 0},
        ])
        self.login_as(self.admin_token)
        response = self.client.get(f'/api/tests/{self.test.id}/attempts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        board = response.data['leaderboard']
        self.assertEqual([row['attemptId'] for row in board], [high.id, low.id])
        self.assertEqual([row['rank'] for row in board], [1, 2])
        self.assertEqual(response.data['statistics']['highestScore'], 5)
        self.assertEqual(response.data['statistics']['completedAttempts'], 2)

    def test_equal_scores_share_rank(self):
        first = self._finish(self.learner, [])
        second = self._finish(self.other_learner, [])
        board = LeaderboardService.get_test_leaderboard(self.test.id, self.admin)['leaderboard']
        self.assertEqual([row['attemptId'] for row in board], [first.id, second.id])
        self.assertEqual({row['rank'] for row in board}, {1})

    def test_leaderboard_owner_only(self):
        self.login_as(self.learner_token)
        self.assertEqual(
            self.client.get(f'/api/tests/{self.test.id}/attempts/').status_code,
            status.HTTP_403_FORBIDDEN
        )
        self.client.force_authenticate(make_user('admin2', UserProfile.Role.ADMIN))
        self.assertEqual(
            self.client.get(f'/api/tests/{self.test.id}/attempts/').status_code,
            status.HTTP_404_NOT_FOUND
        )

    def test_leaderboard_returns_every_attempt_by_default(self):
        for user in (self.learner, self.other_learner, make_user('learner3')):
            self._finish(user, [])
        data = LeaderboardService.get_test_leaderboard(self.test.id, self.admin)
        self.assertEqual(len(data['leaderboard']), 3)
        self.assertEqual(data['totalAttempts'], 3)

    def test_leaderboard_limit_reports_total(self):
        self._finish(self.learner, [])
        self._finish(self.other_learner, [])
        self.login_as(self.admin_token)
        response = self.client.get(f'/api/tests/{self.test.id}/attempts/?limit=1')
        self.assertEqual(len(response.data['leaderboard']), 1)
        self.assertEqual(response.data['totalAttempts'], 2)

    @override_settings(COURSEHIVE={'LEADERBOARD_LIMIT': 1})
    def test_leaderboard_limit_setting(self):
        self._finish(self.learner, [])
        self._finish(self.other_learner, [])
        data = LeaderboardService.get_test_leaderboard(self.test.id, self.admin)
        self.assertEqual(len(data['leaderboard']), 1)
        self.assertEqual(data['totalAttempts'], 2)


class AuthenticationTests(APITestCase):
    """Tests for authentication endpoints."""

    def setUp(self):
        cache.clear()
        self.user = make_user('testuser')
        self.token = Token.objects.create(user=self.user)

    def test_register_admin(self):
        response = self.client.post('/api/auth/register/', {
            'username': 'newadmin', 'email': 'NewAdmin@Example.com',
            'password': 'Sup3r$ecretPass', 'role': 'admin'
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['user']['role'], 'admin')
        self.assertEqual(User.objects.get(username='newadmin').email, 'newadmin@example.com')

    def test_register_rejects_weak_password(self):
        response = self.client.post('/api/auth/register/', {
            'username': 'weak', 'email': 'weak@example.com', 'password': '12345678'
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data['errors'])

    def test_register_rejects_duplicate_email(self):
        response = self.client.post('/api/auth/register/', {
            'username': 'copycat', 'email': 'testuser@test.com', 'password': 'Sup3r$ecretPass'
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_success(self):
        response = self.client.post('/api/auth/login/', {'username': 'testuser', 'password': 'pass12345'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['token'], self.token.key)

    def test_login_with_email(self):
        response = self.client.post('/api/auth/login/', {'username': 'testuser@test.com', 'password': 'pass12345'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_login_wrong_password(self):
        response = self.client.post('/api/auth/login/', {'username': 'testuser', 'password': 'wrongpass'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid username or password.')
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EventType.LOGIN_FAILED).exists())

    def test_logout(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {self.token.key}')
        response = self.client.post('/api/auth/logout/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/auth/profile/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_profile_view(self):
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {self.token.key}')
        response = self.client.get('/api/auth/profile/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'testuser')
        self.assertEqual(response.data['user']['role'], 'user')

    def test_health_is_public(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'OK')


class CourseAPITests(APIBaseTestCase):
    """Tests for courses and purchases."""

    def setUp(self):
        super().setUp()
        self.course = Course.objects.create(
            title='Python 101', description='Basics', price='19.99', created_by=self.admin
        )

    def test_admin_creates_course(self):
        self.login_as(self.admin_token)
        response = self.client.post('/api/courses/', {
            'title': 'Django', 'description': 'Web', 'price': '29.00',
            'thumbnailUrl': 'https://example.com/django.png',
            'videoUrl': 'https://example.com/django.mp4'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['course']['createdBy'], self.admin.id)
        self.assertEqual(response.data['course']['videoUrl'], 'https://example.com/django.mp4')

    def test_user_cannot_create_course(self):
        self.login_as(self.learner_token)
        response = self.client.post('/api/courses/', {'title': 'x', 'price': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_sees_preview(self):
        self.login_as(self.learner_token)
        response = self.client.get('/api/courses/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['courses'][0]['title'], 'Python 101')
        self.assertNotIn('createdBy', response.data['courses'][0])
        self.assertFalse(response.data['courses'][0]['isPurchased'])
        self.assertNotIn('videoUrl', response.data['courses'][0])

    def test_non_owner_admin_cannot_edit(self):
        self.client.force_authenticate(make_user('admin2', UserProfile.Role.ADMIN))
        response = self.client.patch(f'/api/courses/{self.course.id}/', {'title': 'Taken'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_owner_deletes_course(self):
        self.login_as(self.admin_token)
        response = self.client.delete(f'/api/courses/{self.course.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Course.objects.filter(id=self.course.id).exists())

    def test_mine_lists_own_courses(self):
        Course.objects.create(title='Foreign', price='5.00', created_by=make_user('admin2', UserProfile.Role.ADMIN))
        self.login_as(self.admin_token)
        response = self.client.get('/api/courses/mine/')
        self.assertEqual([c['title'] for c in response.data['courses']], ['Python 101'])

    def test_purchase_once(self):
        self.login_as(self.learner_token)
        response = self.client.post(f'/api/courses/{self.course.id}/purchase/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['courseId'], self.course.id)

        response = self.client.post(f'/api/courses/{self.course.id}/purchase/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Purchase.objects.filter(user=self.learner).count(), 1)

    def test_purchase_list(self):
        Purchase.objects.create(user=self.learner, course=self.course)
        self.login_as(self.learner_token)
        response = self.client.get('/api/purchases/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['purchases'][0]['course']['title'], 'Python 101')

    def test_purchase_records_price_paid(self):
        self.login_as(self.learner_token)
        response = self.client.post(f'/api/courses/{self.course.id}/purchase/')
        self.assertEqual(response.data['purchase']['amount'], '19.99')

        self.course.price = Decimal('25.00')
        self.course.save()
        self.assertEqual(Purchase.objects.get(user=self.learner).amount, Decimal('19.99'))

    def test_explore_flags_purchased_courses(self):
        other = Course.objects.create(title='Go', price='9.00', created_by=self.admin)
        Purchase.objects.create(user=self.learner, course=self.course, amount=self.course.price)
        self.login_as(self.learner_token)
        response = self.client.get('/api/courses/')
        flags = {c['id']: c['isPurchased'] for c in response.data['courses']}
        self.assertEqual(flags, {self.course.id: True, other.id: False})

    def test_detail_reveals_video_after_purchase(self):
        self.course.video_url = 'https://example.com/python.mp4'
        self.course.save()
        self.login_as(self.learner_token)

        response = self.client.get(f'/api/courses/{self.course.id}/')
        self.assertFalse(response.data['course']['isPurchased'])
        self.assertIsNone(response.data['course']['videoUrl'])

        Purchase.objects.create(user=self.learner, course=self.course, amount=self.course.price)
        response = self.client.get(f'/api/courses/{self.course.id}/')
        self.assertTrue(response.data['course']['isPurchased'])
        self.assertEqual(response.data['course']['videoUrl'], 'https://example.com/python.mp4')

    def test_watch_requires_purchase(self):
        self.course.video_url = 'https://example.com/python.mp4'
        self.course.save()
        self.login_as(self.learner_token)

        response = self.client.get(f'/api/courses/{self.course.id}/watch/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data['success'])

        self.client.post(f'/api/courses/{self.course.id}/purchase/')
        response = self.client.get(f'/api/courses/{self.course.id}/watch/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['watchAccess'])
        self.assertEqual(response.data['course']['videoUrl'], 'https://example.com/python.mp4')
        self.assertIsNotNone(response.data['purchaseDate'])

    def test_watch_missing_course_not_found(self):
        self.login_as(self.learner_token)
        response = self.client.get(f'/api/courses/{self.course.id + 1000}/watch/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_search_and_price_range(self):
        Course.objects.create(title='Advanced Python', price='99.00', created_by=self.admin)
        Course.objects.create(title='Rust Basics', price='5.00', created_by=self.admin)
        self.login_as(self.learner_token)

        def titles(query):
            response = self.client.get(f'/api/courses/?{query}')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            return sorted(c['title'] for c in response.data['courses'])

        self.assertEqual(titles('search=python'), ['Advanced Python', 'Python 101'])
        self.assertEqual(titles('minPrice=10&maxPrice=50'), ['Python 101'])
        self.assertEqual(titles('maxPrice=19.99'), ['Python 101', 'Rust Basics'])
        self.assertEqual(titles('search=python&minPrice=50'), ['Advanced Python'])


class MaterialAPITests(APIBaseTestCase):
    """Tests for study materials and past papers."""

    def setUp(self):
        super().setUp()
        self.material = Material.objects.create(
            title='Cheat Sheet', type=Material.Type.MATERIAL,
            file_url='https://example.com/cheat.pdf', created_by=self.admin
        )
        self.paper = Material.objects.create(
            title='Exam 2023', type=Material.Type.PAPER,
            file_url='https://example.com/exam.pdf', created_by=self.admin
        )

    def test_admin_publishes_material(self):
        self.login_as(self.admin_token)
        response = self.client.post('/api/materials/', {
            'title': 'Exam 2024', 'type': 'paper', 'fileUrl': 'https://example.com/exam-2024.pdf',
            'originalName': 'exam-2024.pdf', 'fileSize': 2048, 'mimeType': 'application/pdf'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['material']['createdBy'], self.admin.id)
        self.assertEqual(response.data['material']['originalName'], 'exam-2024.pdf')

    def test_material_requires_known_type(self):
        self.login_as(self.admin_token)
        response = self.client.post('/api/materials/', {
            'title': 'Clip', 'type': 'video', 'fileUrl': 'https://example.com/clip.mp4'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('type', response.data['errors'])

    def test_user_cannot_publish(self):
        self.login_as(self.learner_token)
        response = self.client.post('/api/materials/', {
            'title': 'x', 'type': 'material', 'fileUrl': 'https://example.com/x.pdf'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_by_type(self):
        self.login_as(self.learner_token)
        response = self.client.get('/api/materials/')
        self.assertEqual(len(response.data['materials']), 2)

        response = self.client.get('/api/materials/?type=paper')
        self.assertEqual([m['title'] for m in response.data['materials']], ['Exam 2023'])

        response = self.client.get('/api/materials/?type=material')
        self.assertEqual([m['title'] for m in response.data['materials']], ['Cheat Sheet'])

    def test_mine_lists_own_materials(self):
        other_admin = make_user('admin2', UserProfile.Role.ADMIN)
        Material.objects.create(
            title='Foreign', type=Material.Type.MATERIAL,
            file_url='https://example.com/foreign.pdf', created_by=other_admin
        )
        self.client.force_authenticate(other_admin)
        response = self.client.get('/api/materials/mine/')
        self.assertEqual([m['title'] for m in response.data['materials']], ['Foreign'])

    def test_non_owner_cannot_delete(self):
        self.client.force_authenticate(make_user('admin2', UserProfile.Role.ADMIN))
        response = self.client.delete(f'/api/materials/{self.material.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Material.objects.filter(id=self.material.id).exists())

    def test_owner_deletes_material(self):
        self.login_as(self.admin_token)
        response = self.client.delete(f'/api/materials/{self.material.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deletedMaterial']['title'], 'Cheat Sheet')
        self.assertFalse(Material.objects.filter(id=self.material.id).exists())
