# Generated manually for the matching engine records

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Candidate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('headline', models.CharField(blank=True, max_length=200)),
                ('summary', models.TextField(blank=True)),
                ('total_experience', models.DecimalField(
                    decimal_places=1,
                    default=0,
                    max_digits=4,
                    validators=[django.core.validators.MinValueValidator(0)],
                )),
                ('skills', models.JSONField(blank=True, default=list)),
                ('work_experience', models.JSONField(blank=True, default=list)),
                ('education', models.JSONField(blank=True, default=list)),
                ('skill_embeddings', models.JSONField(blank=True, help_text='Profile embedding vector', null=True)),
                ('embeddings_updated_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Candidate',
                'verbose_name_plural': 'Candidates',
                'ordering': ['last_name', 'first_name'],
            },
        ),
        migrations.CreateModel(
            name='JobFamily',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=200, unique=True)),
                ('description', models.TextField(blank=True)),
            ],
            options={
                'verbose_name': 'Job Family',
                'verbose_name_plural': 'Job Families',
            },
        ),
        migrations.CreateModel(
            name='JobTemplate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('job_family', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='templates',
                    to='ats.jobfamily',
                )),
            ],
            options={
                'verbose_name': 'Job Template',
                'verbose_name_plural': 'Job Templates',
            },
        ),
        migrations.CreateModel(
            name='CompanyJobVariant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('custom_title', models.CharField(blank=True, max_length=200)),
                ('custom_description', models.TextField(blank=True)),
                ('company_name', models.CharField(blank=True, max_length=200)),
                ('company_industry', models.CharField(blank=True, max_length=100)),
                ('is_active', models.BooleanField(default=True)),
                ('job_template', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='variants',
                    to='ats.jobtemplate',
                )),
            ],
            options={
                'verbose_name': 'Company Job Variant',
                'verbose_name_plural': 'Company Job Variants',
            },
        ),
        migrations.CreateModel(
            name='RequirementItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('description', models.TextField()),
                ('category', models.CharField(
                    choices=[('must', 'Must Have'), ('should', 'Should Have'), ('nice', 'Nice to Have')],
                    default='should',
                    max_length=10,
                )),
                ('type', models.CharField(
                    choices=[
                        ('skill', 'Skill'),
                        ('experience', 'Experience'),
                        ('education', 'Education'),
                        ('certification', 'Certification'),
                        ('other', 'Other'),
                    ],
                    default='skill',
                    max_length=20,
                )),
                ('weight', models.PositiveSmallIntegerField(
                    default=5,
                    validators=[
                        django.core.validators.MinValueValidator(1),
                        django.core.validators.MaxValueValidator(10),
                    ],
                )),
                ('alternatives', models.JSONField(blank=True, default=list)),
                ('referenced_at', models.DateTimeField(
                    blank=True,
                    help_text='First time a match explanation snapshot used this requirement',
                    null=True,
                )),
                ('job_family', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='requirements',
                    to='ats.jobfamily',
                )),
                ('job_template', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='requirements',
                    to='ats.jobtemplate',
                )),
                ('company_job_variant', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='requirements',
                    to='ats.companyjobvariant',
                )),
            ],
            options={
                'verbose_name': 'Requirement Item',
                'verbose_name_plural': 'Requirement Items',
                'ordering': ['created_at'],
                'constraints': [
                    models.CheckConstraint(
                        condition=(
                            models.Q(job_family__isnull=False, job_template__isnull=True,
                                     company_job_variant__isnull=True)
                            | models.Q(job_family__isnull=True, job_template__isnull=False,
                                       company_job_variant__isnull=True)
                            | models.Q(job_family__isnull=True, job_template__isnull=True,
                                       company_job_variant__isnull=False)
                        ),
                        name='requirement_item_single_scope',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(weight__gte=1, weight__lte=10),
                        name='requirement_item_weight_range',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Application',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('status', models.CharField(
                    choices=[
                        ('applied', 'Applied'),
                        ('screening', 'Screening'),
                        ('shortlisted', 'Shortlisted'),
                        ('interviewing', 'Interviewing'),
                        ('offer_extended', 'Offer Extended'),
                        ('hired', 'Hired'),
                        ('rejected', 'Rejected'),
                    ],
                    default='applied',
                    max_length=20,
                )),
                ('fit_score', models.PositiveSmallIntegerField(
                    blank=True,
                    null=True,
                    validators=[
                        django.core.validators.MinValueValidator(0),
                        django.core.validators.MaxValueValidator(100),
                    ],
                )),
                ('applied_at', models.DateTimeField(auto_now_add=True)),
                ('last_updated', models.DateTimeField(auto_now=True)),
                ('candidate', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='applications',
                    to='ats.candidate',
                )),
                ('company_job_variant', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='applications',
                    to='ats.companyjobvariant',
                )),
            ],
            options={
                'verbose_name': 'Application',
                'verbose_name_plural': 'Applications',
                'ordering': ['-applied_at'],
                'indexes': [
                    models.Index(
                        fields=['company_job_variant', 'fit_score'],
                        name='ats_app_variant_fit_idx',
                    ),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('candidate', 'company_job_variant'),
                        name='unique_candidate_job_variant_application',
                    ),
                ],
            },
        ),
    ]
