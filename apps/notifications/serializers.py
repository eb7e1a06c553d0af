from rest_framework import serializers

from .models import Notification, CounterKey


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id',
            'type',
            'entity_type',
            'entity_id',
            'title',
            'body',
            'metadata',
            'read',
            'read_at',
            'created_at',
        ]
        read_only_fields = fields


class CounterBucketSerializer(serializers.Serializer):
    messages = serializers.IntegerField()
    reservations = serializers.IntegerField()
    payments = serializers.IntegerField()
    interactions = serializers.IntegerField()
    total = serializers.IntegerField()
    last_seen = serializers.DictField(child=serializers.CharField())


class NotificationFilterSerializer(serializers.Serializer):
    unread = serializers.BooleanField(required=False, default=False)


class MarkSeenInputSerializer(serializers.Serializer):
    bucket = serializers.ChoiceField(choices=CounterKey.choices)
