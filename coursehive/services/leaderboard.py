"""
Result reporting: a user's own attempt results and per-test leaderboards.
"""
from django.conf import settings
from django.db.models import Avg, Count, F, Max, Min, Q, Window
from django.db.models.functions import DenseRank

from coursehive.exceptions import ForbiddenError, NotFoundError
from coursehive.models import Attempt
from coursehive.services import catalog


class LeaderboardService:
    """Read-only projections over stored attempts."""

    @classmethod
    def get_attempt_for_user(cls, attempt_id, user) -> Attempt:
        try:
            attempt = Attempt.objects.select_related('test').get(id=attempt_id)
        except (Attempt.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Attempt not found.")

        if attempt.user_id != user.id:
            raise ForbiddenError("You do not own this attempt.")
        return attempt

    @classmethod
    def list_attempts_for_test(cls, test_id):
        """All attempts of a test, best score first; equal scores keep creation order."""
        return Attempt.objects.filter(test_id=test_id).select_related('user').order_by('-score', 'id')

    @classmethod
    def get_test_leaderboard(cls, test_id, owner, limit: int = None) -> dict:
        """
        Leaderboard for a test owned by ``owner``.
        Ranks are dense over the score, computed with a window function.
        Every attempt is returned unless ``limit`` (or the LEADERBOARD_LIMIT
        setting) caps the rows; ``totalAttempts`` always counts them all.
        """
        test = catalog.get_owned_test(test_id, owner)
        if limit is None:
            limit = settings.COURSEHIVE.get('LEADERBOARD_LIMIT')

        all_attempts = cls.list_attempts_for_test(test.id)
        total_attempts = all_attempts.count()
        attempts = all_attempts.annotate(
            rank=Window(
                expression=DenseRank(),
                order_by=F('score').desc()
            )
        )
        if limit:
            attempts = attempts[:limit]

        leaderboard = []
        for attempt in attempts:
            leaderboard.append({
                'rank': attempt.rank,
                'attemptId': attempt.id,
                'userId': attempt.user_id,
                'userName': attempt.user.get_full_name() or attempt.user.username,
                'score': attempt.score,
                'maxScore': attempt.max_score,
                'percentage': round(attempt.percentage, 2),
                'status': attempt.status,
                'startedAt': attempt.started_at,
                'submittedAt': attempt.submitted_at,
                'durationTakenSeconds': attempt.duration_taken_seconds,
            })

        stats = Attempt.objects.filter(
            test=test,
            status__in=Attempt.TERMINAL_STATUSES
        ).aggregate(
            total_attempts=Count('id'),
            avg_score=Avg('score'),
            max_score=Max('score'),
            min_score=Min('score'),
            auto_submitted=Count('id', filter=Q(status=Attempt.Status.AUTO_SUBMITTED))
        )

        return {
            'testId': test.id,
            'testTitle': test.title,
            'totalMarks': test.total_marks,
            'totalAttempts': total_attempts,
            'leaderboard': leaderboard,
            'statistics': {
                'completedAttempts': stats['total_attempts'] or 0,
                'averageScore': round(stats['avg_score'] or 0, 2),
                'highestScore': stats['max_score'] or 0,
                'lowestScore': stats['min_score'] or 0,
                'autoSubmitted': stats['auto_submitted'] or 0,
            }
        }
