"""Serializers for the product catalogue."""

from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """Product serializer; ``company`` comes from the requesting user."""

    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'description', 'category', 'price', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Price must be greater than zero.")
        return value

    def validate_sku(self, value):
        value = value.strip().upper()
        request = self.context.get('request')
        company_id = getattr(getattr(request, 'user', None), 'company_id', None)
        qs = Product.objects.filter(company_id=company_id, sku=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("A product with this SKU already exists.")
        return value
