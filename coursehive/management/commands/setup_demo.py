"""
Management command to set up demo data for Course Hive.
Creates a demo admin, a demo learner, a course, study materials and a published test.
"""
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from rest_framework.authtoken.models import Token
from coursehive.models import Course, Material, Test, UserProfile
from coursehive.services import catalog


DEMO_QUESTIONS = [
    {
        'text': 'What is the output of print(type([]))?',
        'options': ["<class 'list'>", "<class 'tuple'>", "<class 'dict'>", "<class 'set'>"],
        'correct_index': 0,
        'marks': 2,
    },
    {
        'text': 'Python is a statically typed programming language.',
        'options': ['True', 'False'],
        'correct_index': 1,
        'marks': 1,
        'negative_marks': 1,
    },
    {
        'text': 'Which keyword defines a generator function?',
        'options': ['return', 'yield', 'async', 'lambda'],
        'correct_index': 1,
        'marks': 2,
    },
]


class Command(BaseCommand):
    help = 'Set up demo data for testing'

    def _ensure_user(self, username, password, role, **defaults):
        user, created = User.objects.get_or_create(username=username, defaults=defaults)
        if created:
            user.set_password(password)
            user.save()
            user.profile.role = role
            user.profile.save()
            self.stdout.write(self.style.SUCCESS(f'✓ Created {role}: {username} / {password}'))
        else:
            self.stdout.write(f'  User already exists: {username}')
        token, _ = Token.objects.get_or_create(user=user)
        return user, token

    def handle(self, *args, **options):
        self.stdout.write(self.style.NOTICE('\nSetting up Course Hive demo data...\n'))

        learner, learner_token = self._ensure_user(
            'learner', 'Learner#2024', UserProfile.Role.USER,
            email='learner@example.com', first_name='Demo', last_name='Learner'
        )
        instructor, instructor_token = self._ensure_user(
            'instructor', 'Instructor#2024', UserProfile.Role.ADMIN,
            email='instructor@example.com', first_name='Demo', last_name='Instructor'
        )

        course, _ = Course.objects.get_or_create(
            title='Introduction to Python',
            created_by=instructor,
            defaults={
                'description': 'Learn Python programming fundamentals',
                'price': '49.00',
                'thumbnail_url': 'https://media.example.com/courses/python-intro.png',
                'video_url': 'https://media.example.com/courses/python-intro.mp4',
            }
        )
        self.stdout.write(self.style.SUCCESS(f'✓ Course: {course.title}'))

        for title, material_type in (('Python Cheat Sheet', Material.Type.MATERIAL),
                                     ('Python Exam 2023', Material.Type.PAPER)):
            material, _ = Material.objects.get_or_create(
                title=title,
                created_by=instructor,
                defaults={
                    'type': material_type,
                    'file_url': f'https://media.example.com/materials/{title.lower().replace(" ", "-")}.pdf',
                    'mime_type': 'application/pdf',
                }
            )
            self.stdout.write(self.style.SUCCESS(f'✓ {material.get_type_display()}: {material.title}'))

        test = Test.objects.filter(title='Python Basics Quiz', created_by=instructor).first()
        if test is None:
            test = catalog.create_test(
                owner=instructor,
                title='Python Basics Quiz',
                description='Test your Python knowledge with this quiz',
                subject='Programming',
                duration_minutes=15,
                questions=DEMO_QUESTIONS,
                allow_retake=True,
            )
            self.stdout.write(self.style.SUCCESS(
                f'✓ Test: {test.title} with {test.question_count} questions ({test.total_marks} marks)'
            ))
        else:
            self.stdout.write(f'  Test already exists: {test.title}')

        self.stdout.write(self.style.SUCCESS('\n' + '=' * 60))
        self.stdout.write(self.style.SUCCESS('Demo Setup Complete!'))
        self.stdout.write(self.style.SUCCESS('=' * 60))

        self.stdout.write('\nDemo Accounts:')
        self.stdout.write('  ┌─────────────┬─────────────┬─────────────────┐')
        self.stdout.write('  │ Role        │ Username    │ Password        │')
        self.stdout.write('  ├─────────────┼─────────────┼─────────────────┤')
        self.stdout.write('  │ User        │ learner     │ Learner#2024    │')
        self.stdout.write('  │ Admin       │ instructor  │ Instructor#2024 │')
        self.stdout.write('  └─────────────┴─────────────┴─────────────────┘')

        self.stdout.write('\nAPI Tokens:')
        self.stdout.write(f'  Learner:    {learner_token.key}')
        self.stdout.write(f'  Instructor: {instructor_token.key}')

        self.stdout.write('\nAPI Documentation:')
        self.stdout.write('  Swagger UI: http://localhost:8000/api/docs/')
        self.stdout.write('  ReDoc:      http://localhost:8000/api/redoc/')

        self.stdout.write('\nTry it:')
        self.stdout.write(
            f'  curl -X POST -H "Authorization: Token {learner_token.key}" '
            f'http://localhost:8000/api/tests/{test.id}/start/'
        )
        self.stdout.write('')
