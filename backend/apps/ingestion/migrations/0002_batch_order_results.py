import django.core.serializers.json
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("ingestion", "0001_initial"),
    ]

    operations = [
        migrations.RemoveField(
            model_name="ingestionbatch",
            name="import_type",
        ),
        migrations.RemoveField(
            model_name="ingestionbatch",
            name="result",
        ),
        migrations.RenameField(
            model_name="ingestionbatch",
            old_name="payload",
            new_name="request",
        ),
        migrations.AlterField(
            model_name="ingestionbatch",
            name="request",
            field=models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder),
        ),
        migrations.AddField(
            model_name="ingestionbatch",
            name="order_ids",
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.AddField(
            model_name="ingestionbatch",
            name="missing_dates",
            field=models.JSONField(blank=True, default=list),
        ),
        migrations.AddField(
            model_name="ingestionbatch",
            name="error_status",
            field=models.PositiveSmallIntegerField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="ingestionbatch",
            name="error",
            field=models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder),
        ),
        migrations.AddIndex(
            model_name="ingestionbatch",
            index=models.Index(fields=["source", "idempotency_key"], name="ix_ingestion_batch_idem"),
        ),
    ]
