"""
API Views for Course Hive.
Provides endpoints for timed tests, attempts, results, courses and materials.
"""
import logging

from django.db import IntegrityError, transaction
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import (
    extend_schema, extend_schema_view, OpenApiParameter,
    OpenApiExample, OpenApiResponse
)

from coursehive.exceptions import ConflictError, ForbiddenError
from coursehive.models import AuditLog, Course, Material, Purchase
from coursehive.permissions import IsAdminOrReadOnly, IsAdminRole, is_admin
from coursehive.services import catalog, attempts, TestChanges, LeaderboardService
from coursehive.throttling import SubmissionRateThrottle
from .serializers import (
    TestWriteSerializer, TestSerializer, SafeTestSerializer,
    SubmitAttemptSerializer, AttemptSerializer,
    StartAttemptResponseSerializer, SubmitAttemptResponseSerializer,
    CourseSerializer, CourseListingSerializer, CourseDetailSerializer,
    CourseWatchSerializer, PurchaseSerializer, MaterialSerializer
)
from .filters import CourseFilter

logger = logging.getLogger(__name__)


TEST_EXAMPLE = {
    "title": "Python Basics",
    "description": "Warm-up quiz",
    "subject": "Programming",
    "durationMinutes": 10,
    "allowRetake": False,
    "questions": [
        {"text": "2 + 2 = ?", "options": ["3", "4", "5"], "correctIndex": 1, "marks": 2},
        {"text": "Python is typed...", "options": ["dynamically", "statically"], "correctIndex": 0,
         "marks": 3, "negativeMarks": 1}
    ]
}


# =============================================================================
# TESTS
# =============================================================================

@extend_schema(tags=['Tests'])
class TestViewSet(viewsets.ViewSet):
    """
    Timed tests.

    Admins author and manage their own tests. Users browse published tests
    through a safe projection (no answer key), start attempts and submit them
    for automatic grading.
    """
    lookup_value_regex = r'\d+'
    admin_actions = ('create', 'update', 'partial_update', 'destroy', 'leaderboard')

    def get_permissions(self):
        if self.action in self.admin_actions:
            return [IsAuthenticated(), IsAdminRole()]
        return [IsAuthenticated()]

    @extend_schema(
        summary="List tests",
        description="""
`?owned=true` (**admins**): the caller's own tests with answer keys, newest first.

Otherwise: every published test through the safe projection.
""",
        parameters=[
            OpenApiParameter(name='owned', type=bool, location='query', description="Admins: list own tests"),
            OpenApiParameter(name='published', type=bool, location='query', description="List published tests (default)"),
        ],
        responses={200: OpenApiResponse(description="`{success, tests: [...]}`")}
    )
    def list(self, request):
        if request.query_params.get('owned', '').lower() == 'true':
            if not is_admin(request.user):
                raise ForbiddenError("Only admins can list owned tests.")
            tests = catalog.list_owned_tests(request.user)
            return Response({'success': True, 'tests': TestSerializer(tests, many=True).data})

        tests = catalog.list_published_tests()
        return Response({'success': True, 'tests': SafeTestSerializer(tests, many=True).data})

    @extend_schema(
        summary="Create test",
        description="Create a test. `totalMarks` is computed from the questions. **Requires Admin role.**",
        request=TestWriteSerializer,
        responses={201: TestSerializer, 400: OpenApiResponse(description="Validation error")},
        examples=[OpenApiExample('Request Example', value=TEST_EXAMPLE, request_only=True)]
    )
    def create(self, request):
        serializer = TestWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        test = catalog.create_test(owner=request.user, **serializer.validated_data)
        return Response(
            {'success': True, 'message': "Test created successfully", 'test': TestSerializer(test).data},
            status=status.HTTP_201_CREATED
        )

    @extend_schema(
        summary="Get test",
        description="Safe view of a published test. Correct answers and negative marks are withheld.",
        responses={200: SafeTestSerializer, 404: OpenApiResponse(description="Absent or unpublished")}
    )
    def retrieve(self, request, pk=None):
        test = catalog.get_published_test(pk)
        return Response({'success': True, 'test': SafeTestSerializer(test).data})

    @extend_schema(
        summary="Update test",
        description="Partial update: only the fields present in the body change. **Owner admin only.**",
        request=TestWriteSerializer,
        responses={200: TestSerializer, 404: OpenApiResponse(description="Not found or not owned")}
    )
    def update(self, request, pk=None):
        serializer = TestWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        test = catalog.update_test(pk, request.user, TestChanges(**serializer.validated_data))
        return Response({'success': True, 'message': "Test updated successfully", 'test': TestSerializer(test).data})

    @extend_schema(
        summary="Patch test",
        request=TestWriteSerializer,
        responses={200: TestSerializer, 404: OpenApiResponse(description="Not found or not owned")}
    )
    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @extend_schema(
        summary="Delete test",
        description="Delete an owned test and every attempt made against it. **Owner admin only.**",
        responses={200: OpenApiResponse(description="Deleted"), 404: OpenApiResponse(description="Not found or not owned")}
    )
    def destroy(self, request, pk=None):
        test = catalog.delete_test(pk, request.user)

        AuditLog.log(
            event_type=AuditLog.EventType.TEST_DELETE,
            description=f"Deleted test: {test.title}",
            request=request,
            user=request.user,
            metadata={'test_id': int(pk)}
        )
        return Response({
            'success': True,
            'message': "Test deleted successfully",
            'deletedTest': {'id': int(pk), 'title': test.title}
        })

    @extend_schema(
        summary="Test leaderboard",
        description="Attempts on an owned test ordered by score, with summary statistics. **Owner admin only.**",
        tags=['Results'],
        parameters=[OpenApiParameter(name='limit', type=int, location='query', description='Maximum rows')],
        responses={200: OpenApiResponse(description="Leaderboard data")}
    )
    @action(detail=True, methods=['get'], url_path='attempts')
    def leaderboard(self, request, pk=None):
        limit = request.query_params.get('limit')
        try:
            limit = max(1, int(limit)) if limit else None
        except ValueError:
            limit = None

        data = LeaderboardService.get_test_leaderboard(pk, request.user, limit)
        return Response({'success': True, **data})

    @extend_schema(
        summary="Start attempt",
        description="""
Start a timed attempt on a published test.

- 404 if the test is absent or unpublished
- 409 if retakes are disallowed and a completed attempt exists
""",
        request=None,
        responses={200: StartAttemptResponseSerializer, 404: OpenApiResponse(), 409: OpenApiResponse()}
    )
    @action(detail=True, methods=['post'], throttle_classes=[SubmissionRateThrottle])
    def start(self, request, pk=None):
        attempt = attempts.start_attempt(pk, request.user)
        test = attempt.test

        AuditLog.log(
            event_type=AuditLog.EventType.TEST_START,
            description=f"Started: {test.title}",
            request=request,
            user=request.user,
            metadata={'test_id': test.id, 'attempt_id': attempt.id}
        )

        return Response({
            'success': True,
            'attemptId': attempt.id,
            'startedAt': attempt.started_at,
            'expiresAt': attempt.expires_at,
            'test': SafeTestSerializer(test).data,
        })

    @extend_schema(
        summary="Submit attempt",
        description="""
Submit answers and receive the score.

Questions without an answer count as skipped. Submissions after the time
limit are accepted but flagged `autoSubmitted`. A second submission returns 409.
""",
        request=SubmitAttemptSerializer,
        responses={200: SubmitAttemptResponseSerializer, 403: OpenApiResponse(), 404: OpenApiResponse(), 409: OpenApiResponse()},
        examples=[
            OpenApiExample(
                'Request Example',
                value={"attemptId": 1, "answers": [{"questionIndex": 0, "selectedIndex": 1},
                                                   {"questionIndex": 1, "selectedIndex": None}]},
                request_only=True
            )
        ]
    )
    @action(detail=True, methods=['post'], throttle_classes=[SubmissionRateThrottle])
    def submit(self, request, pk=None):
        serializer = SubmitAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = attempts.submit_attempt(
            pk,
            serializer.validated_data['attemptId'],
            request.user,
            serializer.validated_data['answers']
        )

        AuditLog.log(
            event_type=AuditLog.EventType.TEST_SUBMIT,
            description=f"Submitted: {outcome.attempt.test.title}",
            request=request,
            user=request.user,
            metadata={
                'test_id': outcome.attempt.test_id,
                'attempt_id': outcome.attempt.id,
                'score': outcome.score,
                'auto_submitted': outcome.auto_submitted
            }
        )

        return Response({
            'success': True,
            'score': outcome.score,
            'maxScore': outcome.max_score,
            'attemptId': outcome.attempt.id,
            'autoSubmitted': outcome.auto_submitted,
            'status': outcome.attempt.status,
        })


# =============================================================================
# ATTEMPTS
# =============================================================================

@extend_schema(tags=['Results'])
class AttemptViewSet(viewsets.ViewSet):
    """A user's own attempt results."""
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r'\d+'

    @extend_schema(
        summary="Get attempt result",
        responses={200: AttemptSerializer, 403: OpenApiResponse(), 404: OpenApiResponse()}
    )
    def retrieve(self, request, pk=None):
        attempt = LeaderboardService.get_attempt_for_user(pk, request.user)
        return Response({'success': True, 'attempt': AttemptSerializer(attempt).data})


# =============================================================================
# COURSES
# =============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="Explore courses",
        description="All courses, newest first. Users see an `isPurchased` flag per course."
    ),
    retrieve=extend_schema(summary="Get course", description="`videoUrl` is only returned once purchased."),
    create=extend_schema(summary="Create course", description="**Requires Admin role.**"),
    update=extend_schema(summary="Update course", description="**Owner admin only.**"),
    partial_update=extend_schema(summary="Patch course", description="**Owner admin only.**"),
    destroy=extend_schema(summary="Delete course", description="**Owner admin only.**"),
)
@extend_schema(tags=['Courses'])
class CourseViewSet(viewsets.ModelViewSet):
    """
    Course catalogue.

    Users explore, purchase and watch courses; admins manage the courses they created.
    """
    permission_classes = [IsAuthenticated, IsAdminOrReadOnly]
    filterset_class = CourseFilter
    search_fields = ['title', 'description']
    ordering_fields = ['title', 'price', 'created_at']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Course.objects.none()
        queryset = Course.objects.select_related('created_by').order_by('-created_at', '-id')
        if self.action in ('update', 'partial_update', 'destroy', 'mine'):
            queryset = queryset.filter(created_by=self.request.user)
        return queryset

    def get_serializer_class(self):
        if not is_admin(self.request.user):
            if self.action == 'list':
                return CourseListingSerializer
            if self.action == 'retrieve':
                return CourseDetailSerializer
        return CourseSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action in ('list', 'retrieve') and self.request.user.is_authenticated:
            context['purchased_ids'] = set(
                Purchase.objects.filter(user=self.request.user).values_list('course_id', flat=True)
            )
        return context

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        return Response({'success': True, 'courses': response.data})

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        return Response({'success': True, 'course': response.data})

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        logger.info("Course created: id=%s owner=%s", response.data['id'], request.user.id)
        return Response(
            {'success': True, 'message': "Course created successfully", 'course': response.data},
            status=status.HTTP_201_CREATED
        )

    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        return Response({'success': True, 'message': "Course updated successfully", 'course': response.data})

    def destroy(self, request, *args, **kwargs):
        course = self.get_object()
        deleted = {'id': course.id, 'title': course.title}
        course.delete()
        logger.info("Course deleted: id=%s owner=%s", deleted['id'], request.user.id)
        return Response({'success': True, 'message': "Course deleted successfully", 'deletedCourse': deleted})

    @extend_schema(summary="My courses", description="Courses created by the calling admin.", responses={200: CourseSerializer(many=True)})
    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsAdminRole])
    def mine(self, request):
        courses = self.get_queryset()
        return Response({'success': True, 'courses': CourseSerializer(courses, many=True).data})

    @extend_schema(
        summary="Purchase course",
        description="Records the purchase at the current course price.",
        request=None,
        responses={201: PurchaseSerializer, 404: OpenApiResponse(), 409: OpenApiResponse(description="Already purchased")}
    )
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated])
    def purchase(self, request, pk=None):
        course = self.get_object()

        if Purchase.objects.filter(user=request.user, course=course).exists():
            raise ConflictError("You have already purchased this course.")
        try:
            with transaction.atomic():
                purchase = Purchase.objects.create(user=request.user, course=course, amount=course.price)
        except IntegrityError:
            raise ConflictError("You have already purchased this course.")

        AuditLog.log(
            event_type=AuditLog.EventType.COURSE_PURCHASE,
            description=f"Purchased: {course.title}",
            request=request,
            user=request.user,
            metadata={'course_id': course.id, 'purchase_id': purchase.id, 'amount': str(purchase.amount)}
        )

        return Response(
            {
                'success': True,
                'message': "Course purchased successfully",
                'courseId': course.id,
                'purchase': PurchaseSerializer(purchase).data
            },
            status=status.HTTP_201_CREATED
        )

    @extend_schema(
        summary="Watch course",
        description="Course content including `videoUrl`. Requires a purchase.",
        responses={
            200: OpenApiResponse(description="`{success, course, purchaseDate, watchAccess}`"),
            403: OpenApiResponse(description="Not purchased"),
            404: OpenApiResponse()
        }
    )
    @action(detail=True, methods=['get'], permission_classes=[IsAuthenticated])
    def watch(self, request, pk=None):
        course = self.get_object()
        purchase = Purchase.objects.filter(user=request.user, course=course).first()
        if purchase is None:
            logger.info("Watch refused: course=%s user=%s", course.id, request.user.id)
            raise ForbiddenError("You need to purchase this course to watch it.")

        return Response({
            'success': True,
            'course': CourseWatchSerializer(course).data,
            'purchaseDate': purchase.created_at,
            'watchAccess': True,
        })


@extend_schema(tags=['Courses'])
class PurchaseListView(generics.ListAPIView):
    """Courses bought by the calling user."""
    serializer_class = PurchaseSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Purchase.objects.none()
        return Purchase.objects.filter(user=self.request.user).select_related('course')

    @extend_schema(summary="My purchases")
    def get(self, request, *args, **kwargs):
        response = self.list(request, *args, **kwargs)
        return Response({'success': True, 'purchases': response.data})


# =============================================================================
# MATERIALS
# =============================================================================

@extend_schema_view(
    list=extend_schema(
        summary="List materials",
        description="Study materials and past papers, newest first. Filter with `?type=material|paper`."
    ),
    retrieve=extend_schema(summary="Get material"),
    create=extend_schema(
        summary="Publish material",
        description="Register a file already hosted on the media service. **Requires Admin role.**"
    ),
    destroy=extend_schema(summary="Delete material", description="**Owner admin only.**"),
)
@extend_schema(tags=['Materials'])
class MaterialViewSet(mixins.CreateModelMixin,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      mixins.DestroyModelMixin,
                      viewsets.GenericViewSet):
    """Study materials and past papers published by admins."""
    serializer_class = MaterialSerializer
    permission_classes = [IsAuthenticated, IsAdminOrReadOnly]
    filterset_fields = ['type']
    search_fields = ['title', 'original_name']
    ordering_fields = ['title', 'created_at']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Material.objects.none()
        queryset = Material.objects.order_by('-created_at', '-id')
        if self.action in ('destroy', 'mine'):
            queryset = queryset.filter(created_by=self.request.user)
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        return Response({'success': True, 'materials': response.data})

    def retrieve(self, request, *args, **kwargs):
        response = super().retrieve(request, *args, **kwargs)
        return Response({'success': True, 'material': response.data})

    def create(self, request, *args, **kwargs):
        response = super().create(request, *args, **kwargs)
        logger.info("Material published: id=%s type=%s owner=%s",
                    response.data['id'], response.data['type'], request.user.id)
        return Response(
            {'success': True, 'message': "Material uploaded successfully", 'material': response.data},
            status=status.HTTP_201_CREATED
        )

    def destroy(self, request, *args, **kwargs):
        material = self.get_object()
        deleted = {'id': material.id, 'title': material.title}
        material.delete()
        logger.info("Material deleted: id=%s owner=%s", deleted['id'], request.user.id)
        return Response({'success': True, 'message': "Material deleted successfully", 'deletedMaterial': deleted})

    @extend_schema(summary="My materials", description="Materials published by the calling admin.",
                   responses={200: MaterialSerializer(many=True)})
    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsAdminRole])
    def mine(self, request):
        materials = self.filter_queryset(self.get_queryset())
        return Response({'success': True, 'materials': MaterialSerializer(materials, many=True).data})


# =============================================================================
# HEALTH
# =============================================================================

class HealthView(APIView):
    """Liveness probe."""
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(summary="Health check", responses={200: OpenApiResponse(description="`{success, status: 'OK'}`")})
    def get(self, request):
        return Response({'success': True, 'status': 'OK'})
