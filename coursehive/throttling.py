from rest_framework.throttling import UserRateThrottle, AnonRateThrottle


class SubmissionRateThrottle(UserRateThrottle):
    """Rate limit for starting and submitting test attempts."""
    scope = 'submission'


class AuthRateThrottle(AnonRateThrottle):
    """Rate limit for login and registration to slow down brute force."""
    scope = 'auth'
