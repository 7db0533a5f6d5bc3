import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("barcode", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(max_length=500)),
                ("brand", models.CharField(blank=True, max_length=255, null=True)),
                ("image_url", models.URLField(blank=True, max_length=1000, null=True)),
                ("source", models.CharField(
                    choices=[("openfoodfacts", "OpenFoodFacts"), ("ocr_scan", "OCR scan"), ("manual", "Manual")],
                    default="manual", max_length=50,
                )),
                ("nutrients", models.JSONField(blank=True, default=dict)),
                ("serving_size", models.CharField(blank=True, max_length=100, null=True)),
                ("nutri_score", models.CharField(blank=True, max_length=1, null=True)),
                ("nutri_score_value", models.IntegerField(blank=True, null=True)),
                ("highlights", models.JSONField(blank=True, null=True)),
                ("insights", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"db_table": "products"},
        ),
        migrations.CreateModel(
            name="Scan",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("barcode", models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ("image_ref", models.CharField(blank=True, max_length=500, null=True)),
                ("image_stored", models.BooleanField(default=False)),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("processing", "Processing"),
                             ("completed", "Completed"), ("failed", "Failed")],
                    db_index=True, default="pending", max_length=20,
                )),
                ("ocr_raw", models.TextField(blank=True, null=True)),
                ("nutri_score", models.CharField(blank=True, max_length=1, null=True)),
                ("nutri_score_value", models.IntegerField(blank=True, null=True)),
                ("highlights", models.JSONField(blank=True, null=True)),
                ("insights", models.JSONField(blank=True, null=True)),
                ("processing_time_ms", models.IntegerField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("product", models.ForeignKey(
                    blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL,
                    related_name="scans", to="core.product",
                )),
            ],
            options={"db_table": "scans", "ordering": ["-created_at"]},
        ),
    ]
