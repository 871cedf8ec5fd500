from rest_framework import serializers
from .editors import normalize_status_key, repair_default_status, validate_column_form
from .models import (
    JobStatus, JobStatusDependency, KanbanColumn, JobPipeline, JobPipelineStage,
    status_key_validator,
)
from .ordering import next_sort_order


class JobStatusSerializer(serializers.ModelSerializer):
    # Declared explicitly so the key is normalised before it is checked
    key = serializers.CharField(max_length=100)

    class Meta:
        model = JobStatus
        fields = ['id', 'key', 'label', 'description', 'is_active', 'sort_order', 'created_at', 'updated_at']
        read_only_fields = ['sort_order', 'created_at', 'updated_at']

    def validate_key(self, value):
        key = normalize_status_key(value)
        if self.instance is not None:
            if key != self.instance.key:
                raise serializers.ValidationError('Status keys cannot be changed once created.')
            return key
        if not key:
            raise serializers.ValidationError('Key is required.')
        status_key_validator(key)
        if JobStatus.objects.filter(key=key).exists():
            raise serializers.ValidationError(f"A status with key '{key}' already exists.")
        return key

    def validate_label(self, value):
        if not value.strip():
            raise serializers.ValidationError('Label is required.')
        return value.strip()

    def create(self, validated_data):
        validated_data['sort_order'] = next_sort_order(JobStatus.objects.all())
        return super().create(validated_data)


class JobStatusDependencySerializer(serializers.ModelSerializer):
    status_key = serializers.CharField(source='status_id', read_only=True)
    prerequisite_key = serializers.CharField(source='prerequisite_id', read_only=True)
    prerequisite_label = serializers.CharField(source='prerequisite.label', read_only=True)

    class Meta:
        model = JobStatusDependency
        fields = ['id', 'status_key', 'prerequisite_key', 'prerequisite_label', 'dependency_type', 'created_at']


class KanbanColumnSerializer(serializers.ModelSerializer):
    statuses = serializers.ListField(child=serializers.CharField(max_length=100), allow_empty=True)
    default_status = serializers.CharField(max_length=100, allow_blank=True, required=False)
    color = serializers.CharField(max_length=20, required=False)
    color_classes = serializers.CharField(read_only=True)
    status_labels = serializers.SerializerMethodField()

    class Meta:
        model = KanbanColumn
        fields = ['id', 'title', 'statuses', 'status_labels', 'default_status', 'color', 'color_classes',
                  'is_active', 'sort_order', 'created_at', 'updated_at']
        read_only_fields = ['sort_order', 'created_at', 'updated_at']

    def _label_map(self):
        labels = self.context.get('status_labels')
        if labels is None:
            labels = dict(JobStatus.objects.values_list('key', 'label'))
            self.context['status_labels'] = labels
        return labels

    def get_status_labels(self, obj):
        labels = self._label_map()
        return {key: labels.get(key, 'Unknown') for key in obj.statuses}

    def validate(self, attrs):
        instance = self.instance
        form = {
            'title': attrs.get('title', instance.title if instance else ''),
            'statuses': attrs.get('statuses', list(instance.statuses) if instance else []),
            'default_status': attrs.get('default_status', instance.default_status if instance else ''),
            'color': attrs.get('color', instance.color if instance else 'gray'),
        }
        # A partial update that changes the statuses without naming a default repairs it
        if self.partial and 'statuses' in attrs and 'default_status' not in attrs:
            form['default_status'] = repair_default_status(form['statuses'], form['default_status'])
            attrs['default_status'] = form['default_status']

        errors = validate_column_form(form)
        if 'statuses' not in errors:
            # Keys of deleted statuses already on the column stay until someone removes them
            stored = set(instance.statuses) if instance else set()
            known = set(JobStatus.objects.filter(key__in=form['statuses']).values_list('key', flat=True))
            unknown = [key for key in form['statuses'] if key not in known and key not in stored]
            if unknown:
                errors['statuses'] = f"Unknown status keys: {', '.join(unknown)}."
        if errors:
            raise serializers.ValidationError(errors)
        if 'title' in attrs:
            attrs['title'] = attrs['title'].strip()
        return attrs

    def create(self, validated_data):
        validated_data['sort_order'] = next_sort_order(KanbanColumn.objects.all())
        return super().create(validated_data)


class JobPipelineSerializer(serializers.ModelSerializer):
    stage_count = serializers.SerializerMethodField()

    class Meta:
        model = JobPipeline
        fields = ['id', 'name', 'description', 'is_active', 'stage_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_stage_count(self, obj):
        annotated = getattr(obj, 'stage_count', None)
        if annotated is not None:
            return annotated
        return obj.stages.count()

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name is required.')
        return value.strip()


class JobPipelineStageSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobPipelineStage
        fields = ['id', 'pipeline', 'name', 'icon', 'completion_type', 'is_active', 'sort_order',
                  'created_at', 'updated_at']
        read_only_fields = ['pipeline', 'sort_order', 'created_at', 'updated_at']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name is required.')
        return value.strip()

    def validate_icon(self, value):
        return value or None

    def create(self, validated_data):
        pipeline = validated_data['pipeline']
        validated_data['sort_order'] = next_sort_order(pipeline.stages.all())
        return super().create(validated_data)
