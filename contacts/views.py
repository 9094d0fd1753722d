"""Contacts API views."""

from django.db.models import ProtectedError
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, viewsets

from accounts.permissions import IsCompanyMember, is_manager
from core.exceptions import ResourceInUse
from products.views import StandardResultsSetPagination

from .models import Contact
from .serializers import ContactSerializer


class ContactViewSet(viewsets.ModelViewSet):
    """Contacts CRUD.

    - Field reps: see and manage the contacts assigned to them.
    - Managers and admins: every contact of the company.
    """

    serializer_class = ContactSerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsCompanyMember]

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['contact_type', 'city', 'state', 'assigned_to', 'is_active']
    search_fields = ['name', 'phone', 'email', 'city']
    ordering_fields = ['name', 'created_at']

    def get_queryset(self):
        user = self.request.user
        qs = Contact.objects.filter(company_id=user.company_id).select_related('assigned_to')
        if not is_manager(user):
            qs = qs.filter(assigned_to=user)
        return qs

    def perform_create(self, serializer):
        user = self.request.user
        extra = {'company': user.company}
        # Reps always own what they create
        if not is_manager(user) or not serializer.validated_data.get('assigned_to'):
            extra['assigned_to'] = user
        serializer.save(**extra)

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise ResourceInUse('Contact has orders; mark it inactive instead.')
