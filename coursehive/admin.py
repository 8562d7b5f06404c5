from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User
from .models import Attempt, AuditLog, Course, Material, Purchase, Test, UserProfile


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile'


class UserAdmin(BaseUserAdmin):
    inlines = [UserProfileInline]
    list_display = ['username', 'email', 'first_name', 'last_name', 'get_role', 'is_staff']
    list_filter = ['is_staff', 'is_superuser', 'is_active', 'profile__role']

    def get_role(self, obj):
        return obj.profile.get_role_display() if hasattr(obj, 'profile') else '-'
    get_role.short_description = 'Role'


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


class PurchaseInline(admin.TabularInline):
    model = Purchase
    extra = 0
    readonly_fields = ['user', 'amount', 'created_at']
    can_delete = False


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'price', 'created_by', 'purchase_count', 'created_at']
    search_fields = ['title', 'description']
    list_filter = ['created_by']
    inlines = [PurchaseInline]
    readonly_fields = ['created_at', 'updated_at']

    def purchase_count(self, obj):
        return obj.purchases.count()
    purchase_count.short_description = 'Purchases'


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ['title', 'type', 'original_name', 'created_by', 'created_at']
    list_filter = ['type', 'created_by']
    search_fields = ['title', 'original_name']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Test)
class TestAdmin(admin.ModelAdmin):
    list_display = ['title', 'subject', 'created_by', 'published', 'allow_retake',
                    'duration_minutes', 'question_count', 'total_marks', 'created_at']
    list_filter = ['published', 'allow_retake', 'subject']
    search_fields = ['title', 'description', 'subject']
    # total_marks is derived from the questions by the catalog service
    readonly_fields = ['total_marks', 'created_at', 'updated_at']
    fieldsets = (
        (None, {'fields': ('title', 'description', 'subject', 'created_by')}),
        ('Settings', {'fields': ('duration_minutes', 'published', 'allow_retake')}),
        ('Questions', {'fields': ('questions', 'total_marks')}),
        ('Metadata', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'test', 'status', 'score', 'max_score', 'started_at', 'submitted_at']
    list_filter = ['status', 'test']
    search_fields = ['user__username', 'test__title']
    readonly_fields = [
        'test', 'user', 'status', 'started_at', 'submitted_at',
        'duration_taken_seconds', 'answers', 'score', 'max_score'
    ]

    def has_add_permission(self, request):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'event_type', 'user', 'ip_address', 'description_preview']
    list_filter = ['event_type', 'created_at']
    search_fields = ['user__username', 'description', 'ip_address']
    readonly_fields = ['user', 'event_type', 'description', 'ip_address', 'user_agent', 'metadata', 'created_at']
    ordering = ['-created_at']

    def description_preview(self, obj):
        return obj.description[:50] + '...' if len(obj.description) > 50 else obj.description
    description_preview.short_description = 'Description'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
