from datetime import timedelta

from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone


class Attempt(models.Model):
    class Status(models.TextChoices):
        IN_PROGRESS = 'in-progress', 'In Progress'
        SUBMITTED = 'submitted', 'Submitted'
        AUTO_SUBMITTED = 'auto-submitted', 'Auto Submitted'
        GRADED = 'graded', 'Graded'

    TERMINAL_STATUSES = (Status.SUBMITTED, Status.AUTO_SUBMITTED, Status.GRADED)

    test = models.ForeignKey(
        'Test',
        on_delete=models.CASCADE,
        related_name='attempts',
        db_index=True
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='attempts',
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.IN_PROGRESS,
        db_index=True
    )

    started_at = models.DateTimeField(default=timezone.now)
    submitted_at = models.DateTimeField(null=True, blank=True)
    duration_taken_seconds = models.PositiveIntegerField(default=0)

    # One document per test question once graded:
    # {"question_index", "selected_index", "is_correct", "marks_obtained"}
    answers = models.JSONField(default=list, blank=True)
    score = models.IntegerField(default=0)
    max_score = models.IntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-started_at', '-id']
        indexes = [
            models.Index(fields=['test', 'user'], name='attempt_test_user_idx'),
            models.Index(fields=['test', 'status'], name='attempt_test_status_idx'),
            models.Index(fields=['test', 'score'], name='attempt_test_score_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.test.title} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def expires_at(self):
        return self.started_at + timedelta(minutes=self.test.duration_minutes)

    @property
    def percentage(self):
        if self.max_score <= 0:
            return 0.0
        return self.score / self.max_score * 100
