"""
URL configuration for the Field Force CRM project.

Every business API lives under ``/api/``; authentication and team
management are under ``/api/accounts/``. Swagger UI is served at
``/swagger/``.
"""
from django.contrib import admin
from django.urls import path, include
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions
from rest_framework.routers import DefaultRouter

from contacts.views import ContactViewSet
from finance.views import PaymentReminderViewSet, PaymentViewSet
from orders.views import OrderViewSet
from products.views import ProductViewSet


router = DefaultRouter()
router.register(r'contacts', ContactViewSet, basename='contact')
router.register(r'products', ProductViewSet, basename='product')
router.register(r'orders', OrderViewSet, basename='order')
router.register(r'payments', PaymentViewSet, basename='payment')
router.register(r'payment-reminders', PaymentReminderViewSet, basename='payment-reminder')


schema_view = get_schema_view(
    openapi.Info(title="Field Force CRM API", default_version='v1'),
    public=True,
    permission_classes=[permissions.AllowAny],
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include(router.urls)),
    path('api/accounts/', include('accounts.urls')),
    # Swagger Documentation
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
]
