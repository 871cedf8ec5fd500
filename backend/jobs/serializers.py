from rest_framework import serializers
from django.contrib.auth import get_user_model
from .models import Quote, Job, JobStatusChange, Payment, BillOfMaterials, ProductionTask, InstallTask, ScheduleEvent
from .services import calculate_deposit


class QuoteSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.name', read_only=True)
    lead_number = serializers.SerializerMethodField()

    class Meta:
        model = Quote
        fields = [
            'id', 'quote_number', 'client', 'client_name', 'lead', 'lead_number', 'site_address',
            'total_length', 'fence_height', 'line_items', 'materials_subtotal', 'labour_estimate',
            'total_amount', 'deposit_required', 'deposit_percent', 'status', 'is_trade_quote',
            'valid_until', 'notes', 'created_by', 'sent_at', 'approved_at', 'created_at', 'updated_at'
        ]
        read_only_fields = ['quote_number', 'status', 'created_by', 'sent_at', 'approved_at',
                            'created_at', 'updated_at']

    def get_lead_number(self, obj):
        return obj.lead.lead_number if obj.lead else None

    def validate_deposit_percent(self, value):
        if value > 100:
            raise serializers.ValidationError('Deposit percent cannot exceed 100.')
        return value

    def validate_line_items(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Line items must be a list.')
        for item in value:
            if not isinstance(item, dict):
                raise serializers.ValidationError('Each line item must be an object.')
        return value

    def validate(self, attrs):
        for field in ('materials_subtotal', 'labour_estimate', 'total_amount', 'deposit_required'):
            value = attrs.get(field)
            if value is not None and value < 0:
                raise serializers.ValidationError({field: 'Amounts cannot be negative.'})
        return attrs

    def create(self, validated_data):
        if validated_data.get('deposit_required') is None:
            validated_data['deposit_required'] = calculate_deposit(
                validated_data.get('total_amount'), validated_data.get('deposit_percent', 50)
            )
        return super().create(validated_data)


class JobStatusChangeSerializer(serializers.ModelSerializer):
    changed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = JobStatusChange
        fields = ['id', 'from_status', 'to_status', 'changed_by', 'changed_by_name', 'notes', 'created_at']

    def get_changed_by_name(self, obj):
        return obj.changed_by.display_name if obj.changed_by else 'System'


class JobSerializer(serializers.ModelSerializer):
    client_name = serializers.SerializerMethodField()
    status_label = serializers.SerializerMethodField()
    quote_number = serializers.SerializerMethodField()
    assigned_installer_name = serializers.SerializerMethodField()

    class Meta:
        model = Job
        fields = [
            'id', 'job_number', 'client', 'client_name', 'lead', 'quote', 'quote_number', 'job_type',
            'site_address', 'status', 'status_label', 'fence_style', 'total_length', 'fence_height',
            'total_amount', 'deposit_amount', 'deposit_paid', 'final_amount', 'final_paid',
            'assigned_installer', 'assigned_installer_name', 'scheduled_start_date', 'scheduled_end_date',
            'completion_date', 'pipeline', 'notes', 'created_at', 'updated_at'
        ]
        # Status changes go through the status endpoint so dependencies are checked
        read_only_fields = ['job_number', 'status', 'completion_date', 'created_at', 'updated_at']

    def _status_labels(self):
        labels = self.context.get('status_labels')
        if labels is None:
            from backend.workflow.models import JobStatus
            labels = dict(JobStatus.objects.values_list('key', 'label'))
            self.context['status_labels'] = labels
        return labels

    def get_client_name(self, obj):
        return obj.client.name if obj.client else 'Unknown'

    def get_status_label(self, obj):
        return self._status_labels().get(obj.status, 'Unknown')

    def get_quote_number(self, obj):
        return obj.quote.quote_number if obj.quote else None

    def get_assigned_installer_name(self, obj):
        return obj.assigned_installer.display_name if obj.assigned_installer else 'Unassigned'

    def validate(self, attrs):
        pipeline = attrs.get('pipeline')
        if pipeline is not None and not pipeline.is_active:
            raise serializers.ValidationError({'pipeline': 'Inactive pipelines cannot be assigned.'})
        return attrs


class JobCreateSerializer(JobSerializer):
    """Direct job creation; the status may be set once, at creation"""
    status = serializers.CharField(required=False, allow_blank=True)

    class Meta(JobSerializer.Meta):
        read_only_fields = ['job_number', 'completion_date', 'created_at', 'updated_at']


class JobCardSerializer(JobSerializer):
    class Meta(JobSerializer.Meta):
        fields = [
            'id', 'job_number', 'client_name', 'status', 'status_label', 'job_type', 'site_address',
            'total_amount', 'scheduled_start_date', 'assigned_installer_name'
        ]


class JobStatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True)


class PaymentSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.name', read_only=True)
    job_number = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            'id', 'client', 'client_name', 'job', 'job_number', 'quote', 'amount', 'payment_type',
            'payment_method', 'status', 'reference', 'paid_at', 'notes', 'created_by', 'created_at'
        ]
        read_only_fields = ['created_by', 'created_at']

    def get_job_number(self, obj):
        return obj.job.job_number if obj.job else None

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero.')
        return value

    def validate(self, attrs):
        job = attrs.get('job', self.instance.job if self.instance else None)
        client = attrs.get('client', self.instance.client if self.instance else None)
        if job is not None and client is not None and job.client_id != client.id:
            raise serializers.ValidationError({'job': 'Job belongs to a different client.'})
        return attrs


def _display_name(user, default='Unassigned'):
    return user.display_name if user else default


class BillOfMaterialsSerializer(serializers.ModelSerializer):
    job_number = serializers.CharField(source='job.job_number', read_only=True)

    class Meta:
        model = BillOfMaterials
        fields = ['id', 'job', 'job_number', 'items', 'wastage_percent', 'estimated_machine_time',
                  'estimated_labour_time', 'created_at', 'updated_at']
        read_only_fields = ['job', 'created_at', 'updated_at']

    def validate_items(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Items must be a list.')
        for item in value:
            if not isinstance(item, dict):
                raise serializers.ValidationError('Each item must be an object.')
            quantity = item.get('quantity', 0)
            if not isinstance(quantity, (int, float)) or quantity < 0:
                raise serializers.ValidationError('Item quantities must be numbers of zero or more.')
        return value

    def validate_wastage_percent(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError('Wastage must be between 0 and 100 percent.')
        return value


class ProductionTaskSerializer(serializers.ModelSerializer):
    job_number = serializers.CharField(source='job.job_number', read_only=True)
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = ProductionTask
        fields = ['id', 'job', 'job_number', 'task_type', 'status', 'assigned_to', 'assigned_to_name',
                  'machine_used', 'start_time', 'end_time', 'time_spent_minutes', 'qa_result', 'qa_passed_at',
                  'notes', 'created_at', 'updated_at']
        # Timing fields move through the start and complete endpoints
        read_only_fields = ['start_time', 'end_time', 'time_spent_minutes', 'qa_passed_at', 'created_at',
                            'updated_at']

    def get_assigned_to_name(self, obj):
        return _display_name(obj.assigned_to)


class ProductionTaskStartSerializer(serializers.Serializer):
    assigned_to = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all(), required=False,
                                                     allow_null=True)


class ProductionTaskCompleteSerializer(serializers.Serializer):
    qa_result = serializers.ChoiceField(choices=ProductionTask.QA_RESULT_CHOICES, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class InstallTaskSerializer(serializers.ModelSerializer):
    job_number = serializers.CharField(source='job.job_number', read_only=True)
    site_address = serializers.CharField(source='job.site_address', read_only=True)
    installer_name = serializers.SerializerMethodField()

    class Meta:
        model = InstallTask
        fields = ['id', 'job', 'job_number', 'site_address', 'scheduled_date', 'installer', 'installer_name',
                  'status', 'check_in_time', 'check_out_time', 'notes', 'variations_found', 'photos',
                  'created_at', 'updated_at']
        read_only_fields = ['check_in_time', 'check_out_time', 'created_at', 'updated_at']

    def get_installer_name(self, obj):
        return _display_name(obj.installer)

    def validate_photos(self, value):
        if not isinstance(value, list) or not all(isinstance(photo, str) for photo in value):
            raise serializers.ValidationError('Photos must be a list of URLs.')
        return value


class InstallTaskCompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)
    variations_found = serializers.CharField(required=False, allow_blank=True)
    photos = serializers.ListField(child=serializers.CharField(), required=False)


class ScheduleEventSerializer(serializers.ModelSerializer):
    job_number = serializers.SerializerMethodField()
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = ScheduleEvent
        fields = ['id', 'job', 'job_number', 'event_type', 'title', 'description', 'start_date', 'end_date',
                  'assigned_to', 'assigned_to_name', 'is_confirmed', 'client_notified', 'installer_notified',
                  'notes', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_job_number(self, obj):
        return obj.job.job_number if obj.job else None

    def get_assigned_to_name(self, obj):
        return _display_name(obj.assigned_to)

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError('Title is required.')
        return value.strip()

    def validate(self, attrs):
        start = attrs.get('start_date', self.instance.start_date if self.instance else None)
        end = attrs.get('end_date', self.instance.end_date if self.instance else None)
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date cannot be before the start date.'})
        return attrs
