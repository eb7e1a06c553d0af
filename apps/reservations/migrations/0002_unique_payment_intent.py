# Generated manually for the reservations app

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('reservations', '0001_initial'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='reservation',
            constraint=models.UniqueConstraint(
                condition=models.Q(('payment_intent_id', ''), _negated=True),
                fields=('payment_intent_id',),
                name='unique_reservation_payment_intent',
            ),
        ),
    ]
