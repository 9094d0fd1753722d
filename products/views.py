"""Products API views.

CRUD for the company catalogue. Filtering/search/ordering/pagination are
provided for the list endpoint.
"""

from django.db.models import ProtectedError
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, viewsets
from rest_framework.pagination import PageNumberPagination

from accounts.permissions import IsCompanyMember, IsManagerOrReadOnly
from core.exceptions import ResourceInUse

from .models import Product
from .serializers import ProductSerializer


class StandardResultsSetPagination(PageNumberPagination):
    """Default pagination used by most API endpoints."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class ProductViewSet(viewsets.ModelViewSet):
    """Products CRUD.

    - Company members: read the catalogue.
    - Managers and admins: create, update and delete products.
    """

    serializer_class = ProductSerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsCompanyMember, IsManagerOrReadOnly]

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'is_active']
    search_fields = ['name', 'sku', 'description']
    ordering_fields = ['name', 'price', 'created_at']

    def get_queryset(self):
        return Product.objects.filter(company_id=self.request.user.company_id)

    def perform_create(self, serializer):
        serializer.save(company=self.request.user.company)

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise ResourceInUse('Product is used by existing orders; mark it inactive instead.')
