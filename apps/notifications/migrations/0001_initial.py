# Generated manually for the notifications app

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('type', models.CharField(choices=[('message', 'Message'), ('reservation_request', 'Reservation request'), ('reservation_status', 'Reservation status'), ('payment_update', 'Payment update'), ('review', 'Review'), ('system', 'System')], max_length=30)),
                ('entity_type', models.CharField(blank=True, choices=[('thread', 'Thread'), ('reservation', 'Reservation'), ('payment', 'Payment'), ('item', 'Item'), ('user', 'User'), ('system', 'System')], max_length=20)),
                ('entity_id', models.CharField(blank=True, max_length=64)),
                ('title', models.CharField(blank=True, max_length=200)),
                ('body', models.TextField(blank=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['recipient', '-created_at'], name='notification_recipient_idx'),
                    models.Index(fields=['recipient', 'read'], name='notification_unread_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CounterBucket',
            fields=[
                ('recipient', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='notification_counters', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('messages', models.PositiveIntegerField(default=0)),
                ('reservations', models.PositiveIntegerField(default=0)),
                ('payments', models.PositiveIntegerField(default=0)),
                ('interactions', models.PositiveIntegerField(default=0)),
                ('total', models.PositiveIntegerField(default=0)),
                ('last_seen', models.JSONField(blank=True, default=dict)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'notification_counters',
            },
        ),
    ]
