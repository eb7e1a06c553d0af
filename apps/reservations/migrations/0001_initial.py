# Generated manually for the reservations app

import uuid
from django.conf import settings
from django.core.validators import MaxLengthValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('item_id', models.CharField(db_index=True, max_length=64)),
                ('item_title', models.CharField(blank=True, max_length=200)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('days', models.PositiveIntegerField()),
                ('is_free', models.BooleanField(default=False)),
                ('daily_rate_cents', models.PositiveIntegerField(default=0)),
                ('total_cents', models.PositiveIntegerField(default=0)),
                ('fee_breakdown', models.JSONField(blank=True, default=dict)),
                ('amount_total_cents', models.PositiveIntegerField(blank=True, null=True)),
                ('payment_intent_id', models.CharField(blank=True, max_length=100)),
                ('charge_id', models.CharField(blank=True, max_length=100)),
                ('transfer_id', models.CharField(blank=True, max_length=100)),
                ('owner_stripe_account_id', models.CharField(blank=True, max_length=64)),
                ('status', models.CharField(choices=[('requested', 'Requested'), ('accepted', 'Accepted'), ('paid', 'Paid'), ('picked_up', 'Picked up'), ('returned', 'Returned'), ('cancelled', 'Cancelled'), ('paid_out', 'Paid out')], default='requested', max_length=20)),
                ('cancel_reason', models.TextField(blank=True, validators=[MaxLengthValidator(300)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('picked_up_at', models.DateTimeField(blank=True, null=True)),
                ('returned_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('payout_started_at', models.DateTimeField(blank=True, null=True)),
                ('transferred_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('item_owner', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations_as_owner', to=settings.AUTH_USER_MODEL)),
                ('renter', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations_as_renter', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'reservations',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['renter', 'status'], name='reservation_renter_status_idx'),
                    models.Index(fields=['item_owner', 'status'], name='reservation_owner_status_idx'),
                    models.Index(fields=['item_id', 'start_date'], name='reservation_item_start_idx'),
                    models.Index(fields=['status', 'payout_started_at'], name='reservation_payout_claim_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookedDay',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_id', models.CharField(max_length=64)),
                ('day', models.DateField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('reservation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='booked_days', to='reservations.reservation')),
            ],
            options={
                'db_table': 'booked_days',
                'ordering': ['item_id', 'day'],
                'constraints': [
                    models.UniqueConstraint(fields=('item_id', 'day'), name='unique_booked_item_day'),
                ],
            },
        ),
    ]
