from rest_framework import serializers
from .models import Lead
from .stages import LEAD_STATUSES, map_stage_to_status


class LeadSerializer(serializers.ModelSerializer):
    status = serializers.SerializerMethodField()
    client_name = serializers.SerializerMethodField()
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = Lead
        fields = [
            'id', 'lead_number', 'client', 'client_name', 'source', 'lead_type', 'job_fulfillment_type',
            'description', 'site_address', 'measurements_provided', 'fence_length', 'fence_style',
            'stage', 'status', 'assigned_to', 'assigned_to_name', 'follow_up_date', 'notes',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['lead_number', 'created_at', 'updated_at']

    def get_status(self, obj):
        return map_stage_to_status(obj.stage)

    def get_client_name(self, obj):
        return obj.client.name if obj.client else 'Unknown'

    def get_assigned_to_name(self, obj):
        return obj.assigned_to.display_name if obj.assigned_to else 'Unassigned'

    def validate_fence_length(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Fence length cannot be negative.')
        return value


class LeadCardSerializer(LeadSerializer):
    """Compact lead representation used on the lead board"""
    class Meta(LeadSerializer.Meta):
        fields = [
            'id', 'lead_number', 'client_name', 'stage', 'status', 'site_address', 'fence_style',
            'assigned_to_name', 'follow_up_date', 'created_at'
        ]


class LeadMoveSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LEAD_STATUSES)
