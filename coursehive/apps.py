from django.apps import AppConfig


class CoursehiveConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'coursehive'
    verbose_name = 'Course Hive'
