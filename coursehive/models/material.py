from django.db import models
from django.contrib.auth.models import User


class Material(models.Model):
    """Study material or past paper published by an admin."""

    class Type(models.TextChoices):
        MATERIAL = 'material', 'Study Material'
        PAPER = 'paper', 'Past Paper'

    title = models.CharField(max_length=300)
    type = models.CharField(max_length=20, choices=Type.choices, db_index=True)
    file_url = models.URLField(max_length=500)
    public_id = models.CharField(max_length=255, blank=True, default='')
    original_name = models.CharField(max_length=255, blank=True, default='')
    file_size = models.PositiveBigIntegerField(null=True, blank=True)
    mime_type = models.CharField(max_length=100, blank=True, default='')
    created_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='materials',
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.title} ({self.get_type_display()})"
