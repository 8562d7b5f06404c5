from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field

from coursehive.models import Attempt, Course, Material, Purchase, Test
from coursehive.services import catalog


# =============================================================================
# TESTS
# =============================================================================

class QuestionInputSerializer(serializers.Serializer):
    text = serializers.CharField()
    options = serializers.ListField(child=serializers.CharField(allow_blank=True))
    correctIndex = serializers.IntegerField(source='correct_index')
    marks = serializers.IntegerField(min_value=0, required=False)
    negativeMarks = serializers.IntegerField(source='negative_marks', required=False)


class TestWriteSerializer(serializers.Serializer):
    """Input for creating a test; with ``partial=True`` it is the update input."""
    title = serializers.CharField(max_length=300)
    description = serializers.CharField(required=False, allow_blank=True)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True)
    durationMinutes = serializers.IntegerField(source='duration_minutes')
    questions = QuestionInputSerializer(many=True, allow_empty=False)
    published = serializers.BooleanField(required=False)
    allowRetake = serializers.BooleanField(source='allow_retake', required=False)


class QuestionSerializer(serializers.Serializer):
    """Full question including the answer key. Owners only."""
    questionIndex = serializers.IntegerField()
    text = serializers.CharField()
    options = serializers.ListField(child=serializers.CharField())
    correctIndex = serializers.IntegerField()
    marks = serializers.IntegerField()
    negativeMarks = serializers.IntegerField()


class SafeQuestionSerializer(serializers.Serializer):
    questionIndex = serializers.IntegerField()
    text = serializers.CharField()
    options = serializers.ListField(child=serializers.CharField())
    marks = serializers.IntegerField()


class TestSerializer(serializers.ModelSerializer):
    """Owner view of a test."""
    durationMinutes = serializers.IntegerField(source='duration_minutes')
    totalMarks = serializers.IntegerField(source='total_marks')
    allowRetake = serializers.BooleanField(source='allow_retake')
    createdBy = serializers.IntegerField(source='created_by_id')
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')
    questions = serializers.SerializerMethodField()

    class Meta:
        model = Test
        fields = [
            'id', 'title', 'description', 'subject', 'durationMinutes',
            'totalMarks', 'published', 'allowRetake', 'questions',
            'createdBy', 'createdAt', 'updatedAt'
        ]
        read_only_fields = fields

    @extend_schema_field(QuestionSerializer(many=True))
    def get_questions(self, obj):
        return [
            {
                'questionIndex': index,
                'text': q['text'],
                'options': q['options'],
                'correctIndex': q['correct_index'],
                'marks': q['marks'],
                'negativeMarks': q.get('negative_marks', 0),
            }
            for index, q in enumerate(obj.questions or [])
        ]


class SafeTestSerializer(serializers.ModelSerializer):
    """Test-taker view of a test: the answer key never leaves the server."""
    durationMinutes = serializers.IntegerField(source='duration_minutes')
    totalMarks = serializers.IntegerField(source='total_marks')
    questionCount = serializers.IntegerField(source='question_count')
    createdAt = serializers.DateTimeField(source='created_at')
    questions = serializers.SerializerMethodField()

    class Meta:
        model = Test
        fields = [
            'id', 'title', 'description', 'subject', 'durationMinutes',
            'totalMarks', 'questionCount', 'questions', 'createdAt'
        ]
        read_only_fields = fields

    @extend_schema_field(SafeQuestionSerializer(many=True))
    def get_questions(self, obj):
        return catalog.safe_questions(obj)


# =============================================================================
# ATTEMPTS
# =============================================================================

class SubmitAttemptSerializer(serializers.Serializer):
    attemptId = serializers.IntegerField()
    answers = serializers.ListField(child=serializers.JSONField(), required=False, default=list)

    def validate_answers(self, answers):
        # Entries are graded leniently: malformed ones are dropped or marked
        # wrong by the grader instead of failing the whole submission.
        return [
            {
                'question_index': answer.get('questionIndex'),
                'selected_index': answer.get('selectedIndex'),
            }
            for answer in answers
            if isinstance(answer, dict)
        ]


class AnswerSerializer(serializers.Serializer):
    questionIndex = serializers.IntegerField(source='question_index')
    selectedIndex = serializers.JSONField(source='selected_index', allow_null=True)
    isCorrect = serializers.BooleanField(source='is_correct')
    marksObtained = serializers.IntegerField(source='marks_obtained')


class AttemptSerializer(serializers.ModelSerializer):
    testId = serializers.IntegerField(source='test_id')
    userId = serializers.IntegerField(source='user_id')
    startedAt = serializers.DateTimeField(source='started_at')
    submittedAt = serializers.DateTimeField(source='submitted_at', allow_null=True)
    durationTakenSeconds = serializers.IntegerField(source='duration_taken_seconds')
    maxScore = serializers.IntegerField(source='max_score')
    percentage = serializers.FloatField()
    answers = AnswerSerializer(many=True)
    test = serializers.SerializerMethodField()

    class Meta:
        model = Attempt
        fields = [
            'id', 'testId', 'userId', 'status', 'startedAt', 'submittedAt',
            'durationTakenSeconds', 'answers', 'score', 'maxScore',
            'percentage', 'test'
        ]
        read_only_fields = fields

    @extend_schema_field(serializers.DictField(allow_null=True))
    def get_test(self, obj):
        test = obj.test
        return {'id': test.id, 'title': test.title, 'totalMarks': test.total_marks}


class StartAttemptResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    attemptId = serializers.IntegerField()
    startedAt = serializers.DateTimeField()
    expiresAt = serializers.DateTimeField()
    test = SafeTestSerializer()


class SubmitAttemptResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    score = serializers.IntegerField()
    maxScore = serializers.IntegerField()
    attemptId = serializers.IntegerField()
    autoSubmitted = serializers.BooleanField()
    status = serializers.CharField()


# =============================================================================
# COURSES
# =============================================================================

class CourseSerializer(serializers.ModelSerializer):
    thumbnailUrl = serializers.URLField(source='thumbnail_url', required=False, allow_blank=True, max_length=500)
    videoUrl = serializers.URLField(source='video_url', required=False, allow_blank=True, max_length=500)
    createdBy = serializers.IntegerField(source='created_by_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Course
        fields = [
            'id', 'title', 'description', 'price', 'thumbnailUrl', 'videoUrl',
            'createdBy', 'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id']


class CoursePreviewSerializer(serializers.ModelSerializer):
    thumbnailUrl = serializers.URLField(source='thumbnail_url', read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'price', 'thumbnailUrl']
        read_only_fields = fields


class CourseListingSerializer(CoursePreviewSerializer):
    """
    Preview plus the caller's purchase flag.

    Expects ``purchased_ids`` (course ids bought by the caller) in the context.
    """
    isPurchased = serializers.SerializerMethodField()

    class Meta(CoursePreviewSerializer.Meta):
        fields = CoursePreviewSerializer.Meta.fields + ['isPurchased']
        read_only_fields = fields

    @extend_schema_field(serializers.BooleanField())
    def get_isPurchased(self, obj):
        return obj.id in self.context.get('purchased_ids', ())


class CourseDetailSerializer(CourseListingSerializer):
    """Detail view; the video link is only revealed to buyers."""
    videoUrl = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta(CourseListingSerializer.Meta):
        fields = CourseListingSerializer.Meta.fields + ['videoUrl', 'createdAt']
        read_only_fields = fields

    @extend_schema_field(serializers.URLField(allow_null=True))
    def get_videoUrl(self, obj):
        return obj.video_url if self.get_isPurchased(obj) else None


class CourseWatchSerializer(serializers.ModelSerializer):
    thumbnailUrl = serializers.URLField(source='thumbnail_url', read_only=True)
    videoUrl = serializers.URLField(source='video_url', read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'price', 'thumbnailUrl', 'videoUrl']
        read_only_fields = fields


class PurchaseSerializer(serializers.ModelSerializer):
    course = CoursePreviewSerializer(read_only=True)
    purchasedAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Purchase
        fields = ['id', 'course', 'amount', 'purchasedAt']
        read_only_fields = fields


# =============================================================================
# MATERIALS
# =============================================================================

class MaterialSerializer(serializers.ModelSerializer):
    fileUrl = serializers.URLField(source='file_url', max_length=500)
    publicId = serializers.CharField(source='public_id', required=False, allow_blank=True, max_length=255)
    originalName = serializers.CharField(source='original_name', required=False, allow_blank=True, max_length=255)
    fileSize = serializers.IntegerField(source='file_size', required=False, allow_null=True, min_value=0)
    mimeType = serializers.CharField(source='mime_type', required=False, allow_blank=True, max_length=100)
    createdBy = serializers.IntegerField(source='created_by_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Material
        fields = [
            'id', 'title', 'type', 'fileUrl', 'publicId', 'originalName',
            'fileSize', 'mimeType', 'createdBy', 'createdAt'
        ]
        read_only_fields = ['id']
