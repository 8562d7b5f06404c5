from .user_profile import UserProfile
from .course import Course
from .purchase import Purchase
from .material import Material
from .test import Test
from .attempt import Attempt
from .audit import AuditLog

__all__ = [
    'UserProfile', 'Course', 'Purchase', 'Material',
    'Test', 'Attempt', 'AuditLog'
]
