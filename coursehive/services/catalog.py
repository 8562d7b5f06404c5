"""
Test Catalog: authoring and publication of timed tests.

Every function receives the acting user explicitly. ``total_marks`` is only
ever computed here, from the normalised question list.
"""
import logging
from dataclasses import dataclass, fields
from typing import Any, List, Optional

from django.db import transaction

from coursehive.exceptions import NotFoundError, ValidationError
from coursehive.models import Attempt, Test

logger = logging.getLogger(__name__)


@dataclass
class TestChanges:
    """Partial update of a test; ``None`` means the field was not provided."""
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    duration_minutes: Optional[int] = None
    questions: Optional[List[dict]] = None
    published: Optional[bool] = None
    allow_retake: Optional[bool] = None

    def provided(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _clean_title(title) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError({'title': ['Title is required.']})
    return title.strip()


def _clean_duration(duration_minutes) -> int:
    if not _is_int(duration_minutes) or duration_minutes <= 0:
        raise ValidationError({'durationMinutes': ['Duration must be a positive number of minutes.']})
    return duration_minutes


def normalize_question(index: int, question: Any) -> dict:
    if not isinstance(question, dict):
        raise ValidationError({'questions': [f"Question {index} must be an object."]})

    text = question.get('text')
    if not isinstance(text, str) or not text.strip():
        raise ValidationError({'questions': [f"Question {index} has no text."]})

    options = question.get('options')
    if not isinstance(options, list) or len(options) < 2:
        raise ValidationError({'questions': [f"Question {index} needs at least 2 options."]})
    if not all(isinstance(option, str) for option in options):
        raise ValidationError({'questions': [f"Question {index} options must be strings."]})

    correct_index = question.get('correct_index')
    if not _is_int(correct_index) or not 0 <= correct_index < len(options):
        raise ValidationError({'questions': [f"Question {index} has an invalid correct index."]})

    marks = question.get('marks')
    marks = 1 if marks is None else marks
    if not _is_int(marks) or marks < 0:
        raise ValidationError({'questions': [f"Question {index} marks must be a non-negative integer."]})

    negative_marks = question.get('negative_marks')
    negative_marks = 0 if negative_marks is None else negative_marks
    if not _is_int(negative_marks):
        raise ValidationError({'questions': [f"Question {index} negative marks must be an integer."]})

    return {
        'text': text.strip(),
        'options': list(options),
        'correct_index': correct_index,
        'marks': marks,
        'negative_marks': abs(negative_marks),
    }


def normalize_questions(questions: Any) -> List[dict]:
    if not isinstance(questions, list) or not questions:
        raise ValidationError({'questions': ['At least one question is required.']})
    return [normalize_question(index, q) for index, q in enumerate(questions)]


def compute_total_marks(questions: List[dict]) -> int:
    return sum(q['marks'] for q in questions)


def create_test(owner, title, duration_minutes, questions, description='', subject='',
                allow_retake=False, published=True) -> Test:
    normalized = normalize_questions(questions)
    test = Test.objects.create(
        created_by=owner,
        title=_clean_title(title),
        description=description or '',
        subject=subject or '',
        duration_minutes=_clean_duration(duration_minutes),
        questions=normalized,
        total_marks=compute_total_marks(normalized),
        published=published,
        allow_retake=allow_retake,
    )
    logger.info(
        "Test created: id=%s owner=%s questions=%d total_marks=%d",
        test.id, owner.id, len(normalized), test.total_marks
    )
    return test


def get_owned_test(test_id, owner) -> Test:
    try:
        return Test.objects.get(id=test_id, created_by=owner)
    except (Test.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Test not found or unauthorized.")


def update_test(test_id, owner, changes: TestChanges) -> Test:
    test = get_owned_test(test_id, owner)
    provided = changes.provided()

    if 'title' in provided:
        provided['title'] = _clean_title(provided['title'])
    if 'duration_minutes' in provided:
        provided['duration_minutes'] = _clean_duration(provided['duration_minutes'])
    if 'questions' in provided:
        provided['questions'] = normalize_questions(provided['questions'])
        provided['total_marks'] = compute_total_marks(provided['questions'])

    for name, value in provided.items():
        setattr(test, name, value)
    test.save()

    logger.info("Test updated: id=%s fields=%s", test.id, sorted(provided))
    return test


def delete_test(test_id, owner) -> Test:
    """Delete an owned test together with every attempt made against it."""
    test = get_owned_test(test_id, owner)
    with transaction.atomic():
        deleted_attempts, _ = Attempt.objects.filter(test=test).delete()
        test.delete()
    logger.info("Test deleted: id=%s attempts_removed=%d", test_id, deleted_attempts)
    return test


def list_owned_tests(owner):
    return Test.objects.filter(created_by=owner).order_by('-created_at', '-id')


def list_published_tests():
    return Test.objects.filter(published=True).order_by('-created_at', '-id')


def get_test(test_id) -> Test:
    try:
        return Test.objects.get(id=test_id)
    except (Test.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Test not found.")


def get_published_test(test_id) -> Test:
    try:
        return Test.objects.get(id=test_id, published=True)
    except (Test.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("Test not available.")


def safe_questions(test: Test) -> List[dict]:
    """Test-taker view of the questions: no correct index, no negative marks."""
    return [
        {
            'questionIndex': index,
            'text': q['text'],
            'options': list(q['options']),
            'marks': q.get('marks', 1),
        }
        for index, q in enumerate(test.questions or [])
    ]
