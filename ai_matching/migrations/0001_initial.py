# Generated manually for match explanations and job history

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import uuid


def score_field():
    return models.PositiveSmallIntegerField(
        validators=[
            django.core.validators.MinValueValidator(0),
            django.core.validators.MaxValueValidator(100),
        ]
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('ats', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MatchExplanation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('overall_score', score_field()),
                ('must_have_score', score_field()),
                ('should_have_score', score_field()),
                ('nice_to_have_score', score_field()),
                ('strengths', models.JSONField(blank=True, default=list)),
                ('gaps', models.JSONField(blank=True, default=list)),
                ('recommendations', models.JSONField(blank=True, default=list)),
                ('detailed_analysis', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('application', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='match_explanation',
                    to='ats.application',
                )),
            ],
            options={
                'verbose_name': 'Match Explanation',
                'verbose_name_plural': 'Match Explanations',
                'ordering': ['-updated_at'],
            },
        ),
        migrations.CreateModel(
            name='MatchingJobRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('task_id', models.CharField(blank=True, db_index=True, max_length=255)),
                ('job_name', models.CharField(db_index=True, max_length=255)),
                ('application_id', models.CharField(blank=True, db_index=True, max_length=64)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(
                    choices=[('completed', 'Completed'), ('failed', 'Failed')],
                    max_length=20,
                )),
                ('attempts', models.PositiveSmallIntegerField(default=1)),
                ('error', models.TextField(blank=True)),
                ('finished_at', models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                'verbose_name': 'Matching Job Record',
                'verbose_name_plural': 'Matching Job Records',
                'ordering': ['-finished_at'],
                'indexes': [
                    models.Index(
                        fields=['job_name', 'status', 'finished_at'],
                        name='ai_job_name_status_idx',
                    ),
                ],
            },
        ),
    ]
