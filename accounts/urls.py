"""URL routes for accounts APIs."""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
)
from .views import OTPResendView, OTPSendView, RegisterView, TeamViewSet, UserProfileViewSet

router = DefaultRouter()
router.register(r'profile', UserProfileViewSet, basename='user-profile')
router.register(r'users', TeamViewSet, basename='team-member')

urlpatterns = [
    path('register/', RegisterView.as_view(), name='auth_register'),
    path('otp/send/', OTPSendView.as_view(), name='otp_send'),
    path('otp/resend/', OTPResendView.as_view(), name='otp_resend'),
    path('login/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('', include(router.urls)),
]
