from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_add_payout_sweep_schedule"),
    ]

    operations = [
        migrations.AddField(
            model_name="escrowpayment",
            name="refunded_amount_cents",
            field=models.PositiveBigIntegerField(
                default=0,
                help_text="Part of the held amount returned to the client on a split settlement",
            ),
        ),
    ]
