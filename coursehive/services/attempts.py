"""
Attempt Engine: the lifecycle of one timed test-taking session.

    in-progress --submit (on time)--> submitted
    in-progress --submit (late)-----> auto-submitted

Both outcomes are terminal. ``graded`` is reserved for manual grading and is
never produced here, but it counts as terminal everywhere.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from coursehive.exceptions import ConflictError, ForbiddenError, NotFoundError
from coursehive.grading import ObjectiveGradingService
from coursehive.models import Attempt, Test
from coursehive.services import catalog

logger = logging.getLogger(__name__)


@dataclass
class SubmissionOutcome:
    attempt: Attempt
    score: int
    max_score: int
    auto_submitted: bool


def get_grading_service():
    return ObjectiveGradingService()


def start_attempt(test_id, user, now=None) -> Attempt:
    """
    Open a new in-progress attempt for ``user``.

    Retakes are refused (ConflictError) when the test disallows them and the
    user already holds a terminal attempt. Stale in-progress attempts of the
    same user on the same test are superseded by the new one.
    """
    now = now or timezone.now()
    test = catalog.get_published_test(test_id)

    with transaction.atomic():
        # The test row lock serializes starts, including a user's first one.
        test = Test.objects.select_for_update().filter(pk=test.pk).first()
        if test is None:
            raise NotFoundError("Test not found.")
        previous = Attempt.objects.filter(test=test, user=user)

        if not test.allow_retake and previous.filter(status__in=Attempt.TERMINAL_STATUSES).exists():
            logger.info("Retake refused: test=%s user=%s", test.id, user.id)
            raise ConflictError("You have already attempted this test and retake is not allowed.")

        superseded, _ = previous.filter(status=Attempt.Status.IN_PROGRESS).delete()

        attempt = Attempt.objects.create(
            test=test,
            user=user,
            status=Attempt.Status.IN_PROGRESS,
            started_at=now,
            max_score=test.total_marks,
            answers=[],
            score=0,
        )

    logger.info(
        "Attempt started: id=%s test=%s user=%s superseded=%d",
        attempt.id, test.id, user.id, superseded
    )
    return attempt


def submit_attempt(test_id, attempt_id, user, answers: Optional[List[dict]], now=None) -> SubmissionOutcome:
    """
    Grade and close an in-progress attempt.

    Late submissions are accepted and stored as ``auto-submitted``. A second
    submission of the same attempt raises ConflictError and leaves the stored
    attempt untouched, including when two submissions race.
    """
    now = now or timezone.now()
    test = catalog.get_test(test_id)

    try:
        attempt = Attempt.objects.get(id=attempt_id, test=test)
    except (Attempt.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Attempt not found.")

    if attempt.user_id != user.id:
        raise ForbiddenError("You do not own this attempt.")
    if attempt.is_terminal:
        logger.warning("Double submission rejected: attempt=%s user=%s", attempt.id, user.id)
        raise ConflictError("Attempt already submitted.")

    elapsed = now - attempt.started_at
    auto_submitted = elapsed > timedelta(minutes=test.duration_minutes)
    grade = get_grading_service().grade_attempt(test.questions or [], answers or [])
    status = Attempt.Status.AUTO_SUBMITTED if auto_submitted else Attempt.Status.SUBMITTED

    updated = Attempt.objects.filter(
        id=attempt.id,
        status=Attempt.Status.IN_PROGRESS
    ).update(
        answers=grade.answers,
        submitted_at=now,
        duration_taken_seconds=max(0, int(elapsed.total_seconds())),
        score=grade.score,
        status=status,
        updated_at=timezone.now(),
    )
    if not updated:
        logger.warning("Concurrent submission lost the race: attempt=%s", attempt.id)
        raise ConflictError("Attempt already submitted.")

    attempt.refresh_from_db()

    if auto_submitted:
        logger.warning(
            "Late submission auto-submitted: attempt=%s elapsed=%ss allowed=%ss",
            attempt.id, attempt.duration_taken_seconds, test.duration_minutes * 60
        )
    logger.info(
        "Attempt submitted: id=%s test=%s user=%s score=%d/%d status=%s",
        attempt.id, test.id, user.id, attempt.score, attempt.max_score, attempt.status
    )

    return SubmissionOutcome(
        attempt=attempt,
        score=attempt.score,
        max_score=attempt.max_score,
        auto_submitted=auto_submitted,
    )
