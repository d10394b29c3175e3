from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ErrorClass",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(max_length=64, unique=True)),
                ("type", models.CharField(max_length=64)),
                ("severity", models.PositiveSmallIntegerField(default=1)),
                ("reported_file", models.CharField(max_length=512)),
                ("reported_line", models.PositiveIntegerField(default=0)),
                ("real_file", models.CharField(blank=True, default="", max_length=512)),
                ("real_line", models.PositiveIntegerField(default=0)),
                ("generic_message", models.TextField()),
                ("sample_message", models.TextField()),
                ("created_at", models.DateTimeField(db_index=True)),
            ],
            options={
                "verbose_name": "Error class",
                "verbose_name_plural": "Error classes",
                "db_table": "collectlogs_error_class",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="DiagnosticSection",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("label", models.CharField(max_length=64)),
                ("content", models.TextField(blank=True)),
                ("position", models.PositiveSmallIntegerField(default=0)),
                ("error_class", models.ForeignKey(on_delete=models.deletion.CASCADE, related_name="sections", to="collectlogs.errorclass")),
            ],
            options={
                "db_table": "collectlogs_section",
                "ordering": ["error_class", "position", "id"],
            },
        ),
        migrations.CreateModel(
            name="OccurrenceCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("dimension", models.DateField()),
                ("count", models.PositiveIntegerField(default=1)),
                ("error_class", models.ForeignKey(on_delete=models.deletion.CASCADE, related_name="counters", to="collectlogs.errorclass")),
            ],
            options={
                "db_table": "collectlogs_counter",
                "ordering": ["error_class", "dimension"],
            },
        ),
        migrations.AddConstraint(
            model_name="occurrencecounter",
            constraint=models.UniqueConstraint(fields=("error_class", "dimension"), name="collectlogs_counter_unique_day"),
        ),
        migrations.CreateModel(
            name="MessageRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("pattern", models.TextField()),
                ("replacement", models.TextField(blank=True, default="")),
                ("position", models.IntegerField(default=0)),
                ("enabled", models.BooleanField(default=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
            ],
            options={
                "db_table": "collectlogs_message_rule",
                "ordering": ["position", "id"],
            },
        ),
        migrations.CreateModel(
            name="DigestWatermark",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.SlugField(default="default", max_length=50, unique=True)),
                ("last_run_at", models.DateTimeField()),
            ],
            options={
                "db_table": "collectlogs_digest_watermark",
                "ordering": ["key"],
            },
        ),
    ]
