from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator


class Course(models.Model):
    title = models.CharField(max_length=300)
    description = models.TextField(blank=True, default='')
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)]
    )
    # Media lives on an external host; only the public URLs are kept here.
    thumbnail_url = models.URLField(max_length=500, blank=True, default='')
    video_url = models.URLField(max_length=500, blank=True, default='')
    created_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='owned_courses',
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.title
