from rest_framework import serializers
from .models import Client


class ClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = [
            'id', 'name', 'phone', 'email', 'address', 'client_type', 'trade_discount_level',
            'company_name', 'abn', 'notes', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name is required.')
        return value.strip()

    def validate(self, attrs):
        client_type = attrs.get('client_type', self.instance.client_type if self.instance else 'public')
        # Discount levels only apply to trade clients
        if client_type != 'trade':
            attrs['trade_discount_level'] = None
        return attrs
