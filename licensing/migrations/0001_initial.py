# Initial schema for assets, brands, licenses and renewal offers

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


LICENSE_TYPE_CHOICES = [
    ('EXCLUSIVE', 'Exclusive'),
    ('NON_EXCLUSIVE', 'Non-exclusive'),
    ('EXCLUSIVE_TERRITORY', 'Exclusive (territory)'),
]

LICENSE_STATUS_CHOICES = [
    ('DRAFT', 'Draft'),
    ('PENDING_APPROVAL', 'Pending Approval'),
    ('ACTIVE', 'Active'),
    ('EXPIRED', 'Expired'),
    ('TERMINATED', 'Terminated'),
    ('SUSPENDED', 'Suspended'),
]

OFFER_STATUS_CHOICES = [
    ('ACTIVE', 'Active'),
    ('ACCEPTED', 'Accepted'),
    ('REJECTED', 'Rejected'),
    ('EXPIRED', 'Expired'),
]

PRICING_STRATEGY_CHOICES = [
    ('FLAT_RENEWAL', 'Flat renewal'),
    ('USAGE_BASED', 'Usage based'),
    ('MARKET_RATE', 'Market rate'),
    ('PERFORMANCE_BASED', 'Performance based'),
    ('NEGOTIATED', 'Negotiated'),
    ('AUTOMATIC', 'Automatic'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Asset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(db_index=True, max_length=255)),
                ('category', models.CharField(blank=True, db_index=True, help_text='Asset category, used to find market-rate comparables', max_length=100)),
                ('owner_name', models.CharField(blank=True, help_text='Creator or rights holder', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['title'],
            },
        ),
        migrations.CreateModel(
            name='Brand',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('company_name', models.CharField(db_index=True, max_length=255)),
                ('payment_standing', models.CharField(choices=[('good', 'Good'), ('past_due', 'Past Due'), ('delinquent', 'Delinquent')], default='good', help_text='Billing standing; delinquent brands cannot renew', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['company_name'],
            },
        ),
        migrations.CreateModel(
            name='License',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('license_number', models.CharField(blank=True, db_index=True, help_text='Auto-generated: LIC-2025-00001', max_length=50, unique=True)),
                ('license_type', models.CharField(choices=LICENSE_TYPE_CHOICES, max_length=30)),
                ('status', models.CharField(choices=LICENSE_STATUS_CHOICES, db_index=True, default='DRAFT', max_length=30)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField(help_text='Last day of the term (inclusive)')),
                ('fee_cents', models.PositiveBigIntegerField(default=0)),
                ('rev_share_bps', models.PositiveIntegerField(default=0, help_text='Revenue share in basis points (0-10000)', validators=[django.core.validators.MaxValueValidator(10000)])),
                ('scope', models.JSONField(blank=True, default=dict, help_text='Media, placement, geographic, exclusivity, cutdown and attribution scope')),
                ('auto_renew', models.BooleanField(default=False)),
                ('signature_state', models.JSONField(blank=True, default=dict, help_text="Map of party ('brand', 'creator') to ISO signing timestamp")),
                ('signed_at', models.DateTimeField(blank=True, null=True)),
                ('terminated_at', models.DateTimeField(blank=True, null=True)),
                ('termination_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='licenses', to='licensing.asset')),
                ('brand', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='licenses', to='licensing.brand')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_licenses', to=settings.AUTH_USER_MODEL)),
                ('parent_license', models.ForeignKey(blank=True, help_text='License this one renews', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='renewals', to='licensing.license')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['asset', 'status'], name='license_asset_status_idx'),
                    models.Index(fields=['status', 'end_date'], name='license_status_end_idx'),
                    models.Index(fields=['brand', 'status'], name='license_brand_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RenewalOffer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offer_number', models.CharField(blank=True, db_index=True, help_text='Auto-generated: RNW-2025-00001', max_length=50, unique=True)),
                ('strategy', models.CharField(choices=PRICING_STRATEGY_CHOICES, max_length=30)),
                ('status', models.CharField(choices=OFFER_STATUS_CHOICES, db_index=True, default='ACTIVE', max_length=20)),
                ('original_fee_cents', models.PositiveBigIntegerField()),
                ('base_fee_cents', models.PositiveBigIntegerField(help_text='Fee after loyalty and performance adjustments')),
                ('new_fee_cents', models.PositiveBigIntegerField()),
                ('original_rev_share_bps', models.PositiveIntegerField()),
                ('new_rev_share_bps', models.PositiveIntegerField()),
                ('adjustment_percent', models.DecimalField(decimal_places=2, default=0, max_digits=8)),
                ('duration_days', models.PositiveIntegerField()),
                ('proposed_start_date', models.DateField()),
                ('proposed_end_date', models.DateField()),
                ('pricing_breakdown', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('expires_at', models.DateTimeField(db_index=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_renewal_offers', to=settings.AUTH_USER_MODEL)),
                ('license', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='renewal_offers', to='licensing.license')),
                ('successor_license', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='originating_offer', to='licensing.license')),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'ACTIVE')), fields=('license',), name='unique_active_offer_per_license'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LicenseDispute',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.TextField()),
                ('opened_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('license', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='disputes', to='licensing.license')),
            ],
            options={
                'ordering': ['-opened_at'],
            },
        ),
        migrations.CreateModel(
            name='RoyaltyStatement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('period_start', models.DateField()),
                ('period_end', models.DateField()),
                ('amount_cents', models.BigIntegerField(default=0)),
                ('disputed', models.BooleanField(default=False)),
                ('dispute_resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('license', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='royalty_statements', to='licensing.license')),
            ],
            options={
                'ordering': ['-period_start'],
            },
        ),
        migrations.CreateModel(
            name='LicenseUsageMetric',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('views', models.PositiveBigIntegerField(default=0)),
                ('clicks', models.PositiveBigIntegerField(default=0)),
                ('conversions', models.PositiveBigIntegerField(default=0)),
                ('revenue_cents', models.BigIntegerField(default=0)),
                ('license', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='usage_metrics', to='licensing.license')),
            ],
            options={
                'ordering': ['-date'],
                'unique_together': {('license', 'date')},
            },
        ),
        migrations.CreateModel(
            name='LicenseStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(blank=True, choices=LICENSE_STATUS_CHOICES, max_length=30)),
                ('to_status', models.CharField(choices=LICENSE_STATUS_CHOICES, max_length=30)),
                ('reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='license_status_changes', to=settings.AUTH_USER_MODEL)),
                ('license', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='licensing.license')),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'verbose_name_plural': 'License status history',
            },
        ),
    ]
