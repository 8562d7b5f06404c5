from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator


class Test(models.Model):
    """
    A timed multiple-choice question bank owned by an administrator.

    Questions are embedded as a JSON list of documents:
    ``{"text", "options", "correct_index", "marks", "negative_marks"}``.
    ``total_marks`` is a cached sum of question marks maintained by
    ``coursehive.services.catalog``.
    """
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True, default='')
    subject = models.CharField(max_length=200, blank=True, default='')
    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    total_marks = models.IntegerField(default=0)
    questions = models.JSONField(default=list)
    published = models.BooleanField(default=True, db_index=True)
    allow_retake = models.BooleanField(default=False)

    created_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='owned_tests',
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['created_by', 'created_at'], name='test_owner_created_idx'),
            models.Index(fields=['published', 'created_at'], name='test_published_created_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def question_count(self):
        return len(self.questions or [])
