from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .api.views import (
    TestViewSet, AttemptViewSet, CourseViewSet, MaterialViewSet,
    PurchaseListView, HealthView,
)
from .api.auth_views import RegisterView, LoginView, LogoutView, ProfileView

# Router for ViewSets
router = DefaultRouter()
router.register(r'tests', TestViewSet, basename='test')
router.register(r'attempts', AttemptViewSet, basename='attempt')
router.register(r'courses', CourseViewSet, basename='course')
router.register(r'materials', MaterialViewSet, basename='material')

urlpatterns = [
    # ============================================
    # AUTHENTICATION
    # ============================================
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/logout/', LogoutView.as_view(), name='logout'),
    path('auth/profile/', ProfileView.as_view(), name='profile'),

    # ============================================
    # RESULTS & PURCHASES
    # ============================================
    path('results/<int:pk>/', AttemptViewSet.as_view({'get': 'retrieve'}), name='result-detail'),
    path('purchases/', PurchaseListView.as_view(), name='purchase-list'),
    path('health/', HealthView.as_view(), name='health'),

    # ============================================
    # ROUTER URLS
    # ============================================
    path('', include(router.urls)),
]
