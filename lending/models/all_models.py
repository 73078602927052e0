"""
Lending Workflow Models
=======================

LoanRequest is the workflow aggregate; its ``current_status`` is the only
source of truth for where a request is in its lifecycle. Everything else here
hangs off a request: the offer snapshot, the append-only history, and the
loan record created at finalize.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.crypto import get_random_string

from lending.constants import (
    ActionType,
    EMIStatus,
    LoanStatus,
    RequestStatus,
    Role,
    STORED_ROLES,
)
from lending.managers import (
    EMIScheduleQuerySet,
    LoanRequestManager,
    RequestHistoryManager,
    UserManager,
)
from lending.utils.emi import EMIInstallment, EMIPreview

from .base import BaseModel


MONEY = {'max_digits': 14, 'decimal_places': 2}
RATE = {'max_digits': 5, 'decimal_places': 2}


# =============================================================================
# USER MODEL & MANAGER
# =============================================================================

class User(AbstractUser):
    """
    Email-based platform user

    A user may hold several roles at once; each role acts only in its own
    action family (see ``lending.constants.ROLE_FAMILY``).
    """

    username = None
    email = models.EmailField(unique=True)

    roles = models.JSONField(
        default=list,
        blank=True,
        help_text="Any of CUSTOMER, DISTRICT_ADMIN, SUPER_ADMIN, AGENT"
    )
    districts = models.JSONField(
        default=list,
        blank=True,
        help_text="Districts an admin administers or an agent serves"
    )

    objects = UserManager()
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ['email']

    def __str__(self):
        return self.get_full_name() or self.email

    def clean(self):
        super().clean()
        unknown = set(self.roles or []) - STORED_ROLES
        if unknown:
            raise ValidationError({'roles': f"Unknown roles: {', '.join(sorted(unknown))}"})

    def has_role(self, role):
        return role in (self.roles or [])

    def serves_district(self, district):
        return district in (self.districts or [])

    @property
    def is_super_admin(self):
        return self.has_role(Role.SUPER_ADMIN)


# =============================================================================
# LOAN REQUEST
# =============================================================================

class LoanRequest(BaseModel):
    """
    A customer's loan application against a pledged asset

    STATE RULES:
    - ``current_status`` is always a registry state and only changes through
      ``lending.workflow.apply_action``
    - Offer fields (amount, tenure, rate) are all set or all null
    - ``assigned_agent`` is only set once the customer has accepted an offer
    - ``version`` increases by one on every applied transition
    """

    request_number = models.CharField(max_length=32, unique=True, editable=False)

    customer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='loan_requests'
    )
    district = models.CharField(max_length=100, db_index=True)
    assigned_agent = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_requests'
    )

    current_status = models.CharField(
        max_length=40,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
        db_index=True
    )
    status_changed_at = models.DateTimeField(default=timezone.now)
    version = models.PositiveIntegerField(default=0)

    # what the customer asked for
    requested_amount = models.DecimalField(**MONEY, validators=[MinValueValidator(Decimal('0.01'))])
    asset_type = models.CharField(max_length=100)
    asset_description = models.TextField(blank=True)
    customer_notes = models.TextField(blank=True)

    # offer (set and cleared as a unit)
    admin_offered_amount = models.DecimalField(**MONEY, null=True, blank=True)
    admin_tenure_months = models.PositiveIntegerField(null=True, blank=True)
    admin_interest_rate = models.DecimalField(**RATE, null=True, blank=True)
    offer_made_date = models.DateTimeField(null=True, blank=True)
    offer_emi = models.DecimalField(**MONEY, null=True, blank=True)
    offer_total_interest = models.DecimalField(**MONEY, null=True, blank=True)
    offer_total_payment = models.DecimalField(**MONEY, null=True, blank=True)
    offer_accepted_at = models.DateTimeField(null=True, blank=True)

    # inspection
    inspection_scheduled_at = models.DateTimeField(null=True, blank=True)
    inspection_notes = models.TextField(blank=True)

    # payout
    payout_details = models.JSONField(default=dict, blank=True)
    transfer_reference = models.CharField(max_length=100, blank=True)

    objects = LoanRequestManager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['current_status', 'district'], name='lreq_status_district_idx'),
            models.Index(fields=['current_status', 'status_changed_at'], name='lreq_status_changed_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_status__in=RequestStatus.values),
                name='loan_request_status_known'
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(
                        admin_offered_amount__isnull=True,
                        admin_tenure_months__isnull=True,
                        admin_interest_rate__isnull=True,
                    ) | models.Q(
                        admin_offered_amount__isnull=False,
                        admin_tenure_months__isnull=False,
                        admin_interest_rate__isnull=False,
                    )
                ),
                name='loan_request_offer_is_unit'
            ),
        ]

    def __str__(self):
        return f"{self.request_number} ({self.current_status})"

    def save(self, *args, **kwargs):
        if not self.request_number:
            self.request_number = self.generate_request_number()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_request_number():
        timestamp = timezone.now().strftime('%Y%m%d%H%M%S')
        request_number = f"REQ{timestamp}{get_random_string(6, '0123456789')}"
        while LoanRequest.objects.filter(request_number=request_number).exists():
            request_number = f"REQ{timestamp}{get_random_string(6, '0123456789')}"
        return request_number

    def clean(self):
        super().clean()
        if self.current_status not in RequestStatus.values:
            raise ValidationError({'current_status': f"Unknown status: {self.current_status}"})
        offer = [self.admin_offered_amount, self.admin_tenure_months, self.admin_interest_rate]
        if any(value is None for value in offer) and any(value is not None for value in offer):
            raise ValidationError('Offer amount, tenure and interest rate must be set together')
        if self.assigned_agent_id and not self.offer_accepted_at:
            raise ValidationError({'assigned_agent': 'An agent can only be assigned after the offer is accepted'})

    # =========================================================================
    # OFFER
    # =========================================================================

    @property
    def has_offer(self):
        return self.admin_offered_amount is not None

    @property
    def offer_terms(self):
        """(amount, rate, tenure) of the current offer, or None"""
        if not self.has_offer:
            return None
        return self.admin_offered_amount, self.admin_interest_rate, self.admin_tenure_months

    def set_offer(self, preview):
        """
        Store new offer terms and replace the installment snapshot wholesale

        Must run inside the caller's transaction; the request itself is saved
        by the caller.
        """
        self.admin_offered_amount = preview.principal
        self.admin_interest_rate = preview.annual_rate
        self.admin_tenure_months = preview.tenure_months
        self.offer_emi = preview.emi
        self.offer_total_interest = preview.total_interest
        self.offer_total_payment = preview.total_payment
        self.offer_made_date = timezone.now()
        self.offer_accepted_at = None

        self.offer_installments.all().delete()
        OfferInstallment.objects.bulk_create([
            OfferInstallment(
                request=self,
                installment_number=row.installment_number,
                payment_date=row.payment_date,
                payment_amount=row.payment_amount,
                principal_component=row.principal_component,
                interest_component=row.interest_component,
                remaining_balance=row.remaining_balance,
            )
            for row in preview.schedule
        ])

    def clear_offer(self):
        self.admin_offered_amount = None
        self.admin_interest_rate = None
        self.admin_tenure_months = None
        self.offer_emi = None
        self.offer_total_interest = None
        self.offer_total_payment = None
        self.offer_made_date = None
        self.offer_accepted_at = None
        self.offer_installments.all().delete()

    @property
    def emi_schedule(self):
        """The stored offer snapshot as an EMIPreview, or None without an offer"""
        if not self.has_offer:
            return None
        return EMIPreview(
            principal=self.admin_offered_amount,
            annual_rate=self.admin_interest_rate,
            tenure_months=self.admin_tenure_months,
            emi=self.offer_emi,
            total_interest=self.offer_total_interest,
            total_payment=self.offer_total_payment,
            schedule=tuple(row.as_installment() for row in self.offer_installments.order_by('installment_number')),
        )


class OfferInstallment(BaseModel):
    """One row of the EMI snapshot attached to the current offer"""

    request = models.ForeignKey(
        LoanRequest,
        on_delete=models.CASCADE,
        related_name='offer_installments'
    )
    installment_number = models.PositiveIntegerField()
    payment_date = models.DateField()
    payment_amount = models.DecimalField(**MONEY)
    principal_component = models.DecimalField(**MONEY)
    interest_component = models.DecimalField(**MONEY)
    remaining_balance = models.DecimalField(**MONEY)

    class Meta:
        ordering = ['installment_number']
        constraints = [
            models.UniqueConstraint(
                fields=['request', 'installment_number'],
                name='unique_offer_installment_number'
            ),
        ]

    def as_installment(self):
        return EMIInstallment(
            installment_number=self.installment_number,
            payment_date=self.payment_date,
            payment_amount=self.payment_amount,
            principal_component=self.principal_component,
            interest_component=self.interest_component,
            remaining_balance=self.remaining_balance,
        )


# =============================================================================
# REQUEST HISTORY
# =============================================================================

class RequestHistory(models.Model):
    """
    Append-only audit entry

    Integer primary key so that ordering by id is insertion order. Rows are
    never updated or deleted; corrections are new entries.
    """

    id = models.BigAutoField(primary_key=True)
    request = models.ForeignKey(
        LoanRequest,
        on_delete=models.PROTECT,
        related_name='history'
    )
    actor = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        help_text="Null for system-initiated actions"
    )
    action = models.CharField(max_length=64, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = RequestHistoryManager()

    class Meta:
        ordering = ['id']
        verbose_name_plural = "Request history"

    def __str__(self):
        return f"{self.request_id} {self.action} @ {self.created_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError('Request history entries are immutable')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError('Request history entries cannot be deleted')

    @property
    def is_transition(self):
        return self.action in ActionType.values

    def as_dict(self):
        return {
            'id': self.pk,
            'request_id': str(self.request_id),
            'actor_id': str(self.actor_id) if self.actor_id else None,
            'action': self.action,
            'metadata': self.metadata,
            'created_at': self.created_at.isoformat(),
        }


# =============================================================================
# LOAN & EMI SCHEDULE
# =============================================================================

class Loan(BaseModel):
    """
    Authoritative loan record created at finalize

    Terms and installments are copied from the request's offer snapshot and
    never recomputed afterwards.
    """

    request = models.OneToOneField(
        LoanRequest,
        on_delete=models.PROTECT,
        related_name='loan'
    )
    loan_number = models.CharField(max_length=32, unique=True, editable=False)
    customer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='loans'
    )

    approved_amount = models.DecimalField(**MONEY)
    interest_rate = models.DecimalField(**RATE)
    tenure_months = models.PositiveIntegerField()
    emi_amount = models.DecimalField(**MONEY)
    total_interest = models.DecimalField(**MONEY)
    total_payment = models.DecimalField(**MONEY)

    first_emi_date = models.DateField()
    last_emi_date = models.DateField()

    status = models.CharField(
        max_length=20,
        choices=LoanStatus.choices,
        default=LoanStatus.PROCESSING,
        db_index=True
    )
    disbursed_at = models.DateTimeField(null=True, blank=True)
    activated_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.loan_number} - {self.customer}"

    def save(self, *args, **kwargs):
        if not self.loan_number:
            self.loan_number = self.generate_loan_number()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_loan_number():
        timestamp = timezone.now().strftime('%Y%m%d%H%M%S')
        loan_number = f"LN{timestamp}{get_random_string(6, '0123456789')}"
        while Loan.objects.filter(loan_number=loan_number).exists():
            loan_number = f"LN{timestamp}{get_random_string(6, '0123456789')}"
        return loan_number

    @property
    def terms(self):
        return self.approved_amount, self.interest_rate, self.tenure_months

    def missed_emis(self, today=None):
        return self.emis.missed(today)


class EMISchedule(BaseModel):
    """One repayment installment of a finalized loan"""

    loan = models.ForeignKey(
        Loan,
        on_delete=models.CASCADE,
        related_name='emis'
    )
    emi_number = models.PositiveIntegerField()
    due_date = models.DateField(db_index=True)
    emi_amount = models.DecimalField(**MONEY)
    principal_amount = models.DecimalField(**MONEY)
    interest_amount = models.DecimalField(**MONEY)
    remaining_balance = models.DecimalField(**MONEY)

    status = models.CharField(
        max_length=20,
        choices=EMIStatus.choices,
        default=EMIStatus.PENDING,
        db_index=True
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)

    objects = EMIScheduleQuerySet.as_manager()

    class Meta:
        ordering = ['emi_number']
        constraints = [
            models.UniqueConstraint(
                fields=['loan', 'emi_number'],
                name='unique_loan_emi_number'
            ),
        ]

    def __str__(self):
        return f"{self.loan.loan_number} EMI {self.emi_number}"
