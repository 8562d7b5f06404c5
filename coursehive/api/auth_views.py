"""
Authentication Views.
Token-based registration, login, logout and profile.
"""
from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.authtoken.models import Token
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiResponse

from coursehive.exceptions import ValidationError
from coursehive.models import AuditLog
from coursehive.throttling import AuthRateThrottle
from .auth_serializers import UserRegistrationSerializer, LoginSerializer, UserSerializer


# =============================================================================
# REGISTRATION
# =============================================================================

@extend_schema(
    tags=['Authentication'],
    summary="Register new account",
    description="""
**Register a user or admin account.**

### Roles:
- `user` (default) - Can browse and take tests, buy courses
- `admin` - Can author tests and courses

The response carries an authentication token, so no separate login is needed.
""",
    request=UserRegistrationSerializer,
    responses={
        201: OpenApiResponse(
            description="Account created",
            examples=[
                OpenApiExample(
                    'Success',
                    value={
                        "success": True,
                        "message": "Account created successfully.",
                        "token": "9944b09199c62bcf9418ad846dd0e4bbdfc6ee4b",
                        "user": {"id": 1, "username": "learner", "email": "learner@example.com", "role": "user"}
                    }
                )
            ]
        ),
        400: OpenApiResponse(description="Validation error")
    }
)
class RegisterView(APIView):
    """Register a new account and issue its token."""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.save()
        token, _ = Token.objects.get_or_create(user=user)

        AuditLog.log(
            event_type=AuditLog.EventType.REGISTER,
            description=f"New registration: {user.username} ({user.profile.role})",
            request=request,
            user=user
        )

        return Response({
            "success": True,
            "message": "Account created successfully.",
            "token": token.key,
            "user": UserSerializer(user).data
        }, status=status.HTTP_201_CREATED)


# =============================================================================
# LOGIN
# =============================================================================

@extend_schema(
    tags=['Authentication'],
    summary="Login",
    description="""
**Authenticate and receive access token.**

Use the token in subsequent requests:
```
Authorization: Token <your-token>
```

### Demo Accounts (after `manage.py setup_demo`):
| Role | Username | Password |
|------|----------|----------|
| User | learner | Learner#2024 |
| Admin | instructor | Instructor#2024 |
""",
    request=LoginSerializer,
    responses={
        200: OpenApiResponse(description="Login successful"),
        400: OpenApiResponse(description="Invalid credentials")
    }
)
class LoginView(APIView):
    """Login with username (or email) and password to get an auth token."""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        username = serializer.validated_data['username']
        password = serializer.validated_data['password']

        if '@' in username:
            match = User.objects.filter(email__iexact=username).first()
            if match:
                username = match.username

        user = authenticate(username=username, password=password)

        if not user:
            # Inactive accounts also fail here with the default ModelBackend.
            AuditLog.log(
                event_type=AuditLog.EventType.LOGIN_FAILED,
                description=f"Failed login attempt: {serializer.validated_data['username']}",
                request=request
            )
            raise ValidationError("Invalid username or password.")

        token, _ = Token.objects.get_or_create(user=user)

        AuditLog.log(
            event_type=AuditLog.EventType.LOGIN,
            description=f"User logged in: {user.username}",
            request=request,
            user=user
        )

        return Response({
            "success": True,
            "token": token.key,
            "user": UserSerializer(user).data
        })


@extend_schema(tags=['Authentication'])
class LogoutView(APIView):
    """Logout and invalidate token."""
    permission_classes = [IsAuthenticated]

    @extend_schema(summary="Logout", request=None, responses={200: OpenApiResponse(description="Logged out")})
    def post(self, request):
        Token.objects.filter(user=request.user).delete()

        AuditLog.log(
            event_type=AuditLog.EventType.LOGOUT,
            description=f"User logged out: {request.user.username}",
            request=request,
            user=request.user
        )

        return Response({"success": True, "message": "Logged out successfully."})


# =============================================================================
# PROFILE
# =============================================================================

@extend_schema(
    tags=['Authentication'],
    summary="Get current user profile",
    responses={200: UserSerializer}
)
class ProfileView(APIView):
    """Get current user profile."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "user": UserSerializer(request.user).data})
