"""
Request middleware for Course Hive.
Security headers on every response and an access trail for attempt traffic.
"""
import logging
import re
import time

from django.conf import settings

logger = logging.getLogger(__name__)

DOC_PATHS = ('/api/docs/', '/api/redoc/', '/api/schema/')


def get_client_ip(request) -> str:
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


class SecurityHeadersMiddleware:
    """Add security headers to all responses."""

    headers = {
        'X-Frame-Options': 'DENY',
        'X-Content-Type-Options': 'nosniff',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'geolocation=(), microphone=(), camera=()',
    }

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        for name, value in self.headers.items():
            response[name] = value

        # Results and tokens must not be cached by intermediaries
        if request.path.startswith('/api/') and request.path not in DOC_PATHS:
            response['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
            response['Pragma'] = 'no-cache'

        # Swagger UI needs inline scripts from the sidecar bundle in DEBUG
        if not settings.DEBUG or not request.path.startswith('/api/docs'):
            response['Content-Security-Policy'] = (
                "default-src 'self'; "
                "script-src 'self' 'unsafe-inline'; "
                "style-src 'self' 'unsafe-inline'; "
                "img-src 'self' data:; "
                "frame-ancestors 'none'"
            )

        return response


class AttemptRequestLoggingMiddleware:
    """
    Log every attempt start and submission with caller, outcome and latency.
    Rejections (409, 429) show up here even though no attempt changes.
    """
    attempt_path = re.compile(r'^/api/tests/(?P<test_id>\d+)/(?P<action>start|submit)/$')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        match = self.attempt_path.match(request.path) if request.method == 'POST' else None
        if not match:
            return self.get_response(request)

        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000

        user = getattr(request, 'user', None)
        user_id = user.id if user is not None and user.is_authenticated else 'anonymous'
        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            "ATTEMPT_%s | Test: %s | User: %s | IP: %s | Status: %s | %.1fms",
            match.group('action').upper(), match.group('test_id'), user_id,
            get_client_ip(request), response.status_code, elapsed_ms
        )
        return response
