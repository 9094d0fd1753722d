"""Accounts app views.

Contains:
- Signup (company + admin user) with server-side OTP verification
- OTP send/resend endpoints used by the signup form
- Profile and team management APIs
"""

import logging

from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from core.exceptions import ExternalServiceError
from notifications.phone import mask_identifier

from .otp import get_otp_service
from .permissions import IsAdmin, IsCompanyMember, IsManager
from .serializers import (
    OTPResendSerializer,
    OTPSendSerializer,
    RegisterSerializer,
    TeamMemberSerializer,
    UserProfileSerializer,
)

logger = logging.getLogger(__name__)


class RegisterView(generics.CreateAPIView):
    """Public signup endpoint; verifies the OTP proof before creating anything."""

    queryset = RegisterSerializer.Meta.model.objects.all()
    permission_classes = [AllowAny]
    serializer_class = RegisterSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.request.method == 'POST':
            context['otp_service'] = get_otp_service()
        return context

    def perform_create(self, serializer):
        user = serializer.save()
        logger.info('Registered company %s with admin %s', user.company_id, user.username)


def _otp_response(result):
    if result.success:
        return Response(
            {'detail': result.message, 'request_id': result.request_id},
            status=status.HTTP_200_OK,
        )
    if result.retryable:
        raise ExternalServiceError(result.error)
    return Response({'detail': result.error}, status=status.HTTP_400_BAD_REQUEST)


class OTPSendView(APIView):
    """Ask the OTP provider to send a code to a phone number or e-mail address."""

    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'otp'

    def post(self, request):
        serializer = OTPSendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        logger.info('OTP send requested for %s', mask_identifier(data['identifier']))
        result = get_otp_service().send_otp(data['identifier'], int(data['length']), data['expiry_minutes'])
        return _otp_response(result)


class OTPResendView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'otp'

    def post(self, request):
        serializer = OTPResendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = get_otp_service().resend_otp(data['identifier'], data['retry_type'])
        return _otp_response(result)


class UserProfileViewSet(viewsets.GenericViewSet):
    """Authenticated profile management."""

    permission_classes = [IsAuthenticated]
    serializer_class = UserProfileSerializer

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        """Get or update the authenticated user's profile."""
        user = request.user
        if request.method == 'GET':
            return Response(self.get_serializer(user).data)

        serializer = self.get_serializer(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class TeamViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Company users.

    - Managers and admins: list the team.
    - Admins: add field reps and managers.
    """

    serializer_class = TeamMemberSerializer

    def get_permissions(self):
        if self.action == 'create':
            return [IsCompanyMember(), IsAdmin()]
        return [IsCompanyMember(), IsManager()]

    def get_queryset(self):
        return (
            TeamMemberSerializer.Meta.model.objects
            .filter(company_id=self.request.user.company_id)
            .order_by('username')
        )
