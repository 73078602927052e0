import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('roles', models.JSONField(blank=True, default=list, help_text='Any of CUSTOMER, DISTRICT_ADMIN, SUPER_ADMIN, AGENT')),
                ('districts', models.JSONField(blank=True, default=list, help_text='Districts an admin administers or an agent serves')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'ordering': ['email'],
            },
        ),
        migrations.CreateModel(
            name='LoanRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='When this record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When this record was last updated')),
                ('request_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('district', models.CharField(db_index=True, max_length=100)),
                ('current_status', models.CharField(choices=[('PENDING', 'Pending'), ('UNDER_REVIEW', 'Under Review'), ('MORE_INFO_REQUIRED', 'More Info Required'), ('OFFER_SENT', 'Offer Sent'), ('OFFER_ACCEPTED', 'Offer Accepted'), ('OFFER_DECLINED', 'Offer Declined'), ('OFFER_EXPIRED', 'Offer Expired'), ('INSPECTION_SCHEDULED', 'Inspection Scheduled'), ('INSPECTION_RESCHEDULE_REQUESTED', 'Reschedule Requested'), ('INSPECTION_IN_PROGRESS', 'Inspection In Progress'), ('INSPECTION_COMPLETED', 'Inspection Completed'), ('CUSTOMER_NOT_AVAILABLE', 'Customer Not Available'), ('ASSET_MISMATCH', 'Asset Mismatch'), ('AGENT_NOT_AVAILABLE', 'Agent Not Available'), ('APPROVED', 'Approved'), ('PENDING_SIGNATURE', 'Pending Signature'), ('PENDING_BANK_DETAILS', 'Pending Bank Details'), ('BANK_DETAILS_SUBMITTED', 'Bank Details Submitted'), ('PROCESSING_LOAN', 'Processing Loan'), ('TRANSFERRING_AMOUNT', 'Transferring Amount'), ('TRANSFER_FAILED', 'Transfer Failed'), ('AMOUNT_DISBURSED', 'Amount Disbursed'), ('ACTIVE', 'Active'), ('PAYMENT_OVERDUE', 'Payment Overdue'), ('DEFAULTED', 'Defaulted'), ('COMPLETED', 'Completed'), ('REJECTED', 'Rejected'), ('CANCELLED', 'Cancelled')], db_index=True, default='PENDING', max_length=40)),
                ('status_changed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('version', models.PositiveIntegerField(default=0)),
                ('requested_amount', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('asset_type', models.CharField(max_length=100)),
                ('asset_description', models.TextField(blank=True)),
                ('customer_notes', models.TextField(blank=True)),
                ('admin_offered_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('admin_tenure_months', models.PositiveIntegerField(blank=True, null=True)),
                ('admin_interest_rate', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('offer_made_date', models.DateTimeField(blank=True, null=True)),
                ('offer_emi', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('offer_total_interest', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('offer_total_payment', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('offer_accepted_at', models.DateTimeField(blank=True, null=True)),
                ('inspection_scheduled_at', models.DateTimeField(blank=True, null=True)),
                ('inspection_notes', models.TextField(blank=True)),
                ('payout_details', models.JSONField(blank=True, default=dict)),
                ('transfer_reference', models.CharField(blank=True, max_length=100)),
                ('assigned_agent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_requests', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loan_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['current_status', 'district'], name='lreq_status_district_idx'),
                    models.Index(fields=['current_status', 'status_changed_at'], name='lreq_status_changed_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('current_status__in', ['PENDING', 'UNDER_REVIEW', 'MORE_INFO_REQUIRED', 'OFFER_SENT', 'OFFER_ACCEPTED', 'OFFER_DECLINED', 'OFFER_EXPIRED', 'INSPECTION_SCHEDULED', 'INSPECTION_RESCHEDULE_REQUESTED', 'INSPECTION_IN_PROGRESS', 'INSPECTION_COMPLETED', 'CUSTOMER_NOT_AVAILABLE', 'ASSET_MISMATCH', 'AGENT_NOT_AVAILABLE', 'APPROVED', 'PENDING_SIGNATURE', 'PENDING_BANK_DETAILS', 'BANK_DETAILS_SUBMITTED', 'PROCESSING_LOAN', 'TRANSFERRING_AMOUNT', 'TRANSFER_FAILED', 'AMOUNT_DISBURSED', 'ACTIVE', 'PAYMENT_OVERDUE', 'DEFAULTED', 'COMPLETED', 'REJECTED', 'CANCELLED'])), name='loan_request_status_known'),
                    models.CheckConstraint(condition=models.Q(models.Q(('admin_interest_rate__isnull', True), ('admin_offered_amount__isnull', True), ('admin_tenure_months__isnull', True)), models.Q(('admin_interest_rate__isnull', False), ('admin_offered_amount__isnull', False), ('admin_tenure_months__isnull', False)), _connector='OR'), name='loan_request_offer_is_unit'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Loan',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='When this record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When this record was last updated')),
                ('loan_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('approved_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('interest_rate', models.DecimalField(decimal_places=2, max_digits=5)),
                ('tenure_months', models.PositiveIntegerField()),
                ('emi_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('total_interest', models.DecimalField(decimal_places=2, max_digits=14)),
                ('total_payment', models.DecimalField(decimal_places=2, max_digits=14)),
                ('first_emi_date', models.DateField()),
                ('last_emi_date', models.DateField()),
                ('status', models.CharField(choices=[('PROCESSING', 'Processing'), ('ACTIVE', 'Active'), ('COMPLETED', 'Completed'), ('DEFAULTED', 'Defaulted')], db_index=True, default='PROCESSING', max_length=20)),
                ('disbursed_at', models.DateTimeField(blank=True, null=True)),
                ('activated_at', models.DateTimeField(blank=True, null=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='loans', to=settings.AUTH_USER_MODEL)),
                ('request', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='loan', to='lending.loanrequest')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='EMISchedule',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='When this record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When this record was last updated')),
                ('emi_number', models.PositiveIntegerField()),
                ('due_date', models.DateField(db_index=True)),
                ('emi_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('principal_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('interest_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('remaining_balance', models.DecimalField(decimal_places=2, max_digits=14)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('PAID', 'Paid'), ('OVERDUE', 'Overdue'), ('DEFAULTED', 'Defaulted')], db_index=True, default='PENDING', max_length=20)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('payment_reference', models.CharField(blank=True, max_length=100)),
                ('loan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='emis', to='lending.loan')),
            ],
            options={
                'ordering': ['emi_number'],
                'constraints': [
                    models.UniqueConstraint(fields=('loan', 'emi_number'), name='unique_loan_emi_number'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OfferInstallment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='When this record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='When this record was last updated')),
                ('installment_number', models.PositiveIntegerField()),
                ('payment_date', models.DateField()),
                ('payment_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('principal_component', models.DecimalField(decimal_places=2, max_digits=14)),
                ('interest_component', models.DecimalField(decimal_places=2, max_digits=14)),
                ('remaining_balance', models.DecimalField(decimal_places=2, max_digits=14)),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offer_installments', to='lending.loanrequest')),
            ],
            options={
                'ordering': ['installment_number'],
                'constraints': [
                    models.UniqueConstraint(fields=('request', 'installment_number'), name='unique_offer_installment_number'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RequestHistory',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('action', models.CharField(db_index=True, max_length=64)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('actor', models.ForeignKey(blank=True, help_text='Null for system-initiated actions', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='history', to='lending.loanrequest')),
            ],
            options={
                'verbose_name_plural': 'Request history',
                'ordering': ['id'],
            },
        ),
    ]
