"""
EMI Amortization Engine
=======================

Equal-installment, reducing-balance amortization.

    preview = compute_schedule(Decimal('45000'), Decimal('12'), 6)
    preview.emi                    # Decimal('7764.68')
    preview.schedule[-1].remaining_balance   # Decimal('0.00')

The engine is pure: it touches no database and no request state, and the
same (principal, rate, tenure, first payment date) always yields the same
preview, so results are cached.

Rounding
--------
Interest is rounded half-up to two places per row. The unrounded EMI drives
every row except the last, and each of those principal components is rounded
*down* to the paisa, so the running balance never falls below the exact
balance. The last row repays whatever balance is left: the principal
components sum to the principal, the final remaining balance is exactly zero,
and the residue is never negative, so principal components are non-decreasing
across every row (including the last).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_DOWN
from functools import lru_cache

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.utils import timezone

from lending.constants import EMIStatus
from lending.exceptions import InvalidOfferTermsError
from lending.utils.money import MoneyCalculator, round_money


ZERO = Decimal('0.00')


@dataclass(frozen=True)
class EMIInstallment:
    installment_number: int
    payment_date: date
    payment_amount: Decimal
    principal_component: Decimal
    interest_component: Decimal
    remaining_balance: Decimal

    def as_dict(self):
        return {
            'installment_number': self.installment_number,
            'payment_date': self.payment_date.isoformat(),
            'payment_amount': str(self.payment_amount),
            'principal_component': str(self.principal_component),
            'interest_component': str(self.interest_component),
            'remaining_balance': str(self.remaining_balance),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            installment_number=int(data['installment_number']),
            payment_date=date.fromisoformat(data['payment_date']),
            payment_amount=Decimal(data['payment_amount']),
            principal_component=Decimal(data['principal_component']),
            interest_component=Decimal(data['interest_component']),
            remaining_balance=Decimal(data['remaining_balance']),
        )


@dataclass(frozen=True)
class EMIPreview:
    principal: Decimal
    annual_rate: Decimal
    tenure_months: int
    emi: Decimal
    total_interest: Decimal
    total_payment: Decimal
    schedule: tuple

    def as_dict(self):
        """JSON-safe snapshot; money as strings so nothing passes through floats"""
        return {
            'principal': str(self.principal),
            'annual_rate': str(self.annual_rate),
            'tenure_months': self.tenure_months,
            'emi': str(self.emi),
            'total_interest': str(self.total_interest),
            'total_payment': str(self.total_payment),
            'schedule': [row.as_dict() for row in self.schedule],
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            principal=Decimal(data['principal']),
            annual_rate=Decimal(data['annual_rate']),
            tenure_months=int(data['tenure_months']),
            emi=Decimal(data['emi']),
            total_interest=Decimal(data['total_interest']),
            total_payment=Decimal(data['total_payment']),
            schedule=tuple(EMIInstallment.from_dict(row) for row in data['schedule']),
        )


# =============================================================================
# VALIDATION
# =============================================================================

def validate_offer_terms(principal, annual_rate, tenure_months):
    """
    Normalize and validate offer terms

    Returns:
        tuple: (principal, annual_rate, tenure_months) as (Decimal, Decimal, int)

    Raises:
        InvalidOfferTermsError: listing every offending field
    """
    errors = {}

    amount = MoneyCalculator.to_decimal(principal)
    if amount is None:
        errors['amount'] = ['Amount must be a number']
    elif amount <= 0:
        errors['amount'] = ['Amount must be greater than zero']
    elif not MoneyCalculator.has_money_precision(amount):
        errors['amount'] = ['Amount cannot have more than two decimal places']

    rate = MoneyCalculator.to_decimal(annual_rate)
    if rate is None:
        errors['interest_rate'] = ['Interest rate must be a number']
    elif rate < 0:
        errors['interest_rate'] = ['Interest rate cannot be negative']

    tenure = _to_whole_number(tenure_months)
    if tenure is None or tenure <= 0:
        errors['tenure_months'] = ['Tenure must be a positive whole number of months']

    if errors:
        raise InvalidOfferTermsError('Invalid offer terms', errors=errors)

    return round_money(amount), rate, tenure


def _to_whole_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    number = MoneyCalculator.to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


# =============================================================================
# SCHEDULE
# =============================================================================

def default_first_payment_date(start=None):
    """First EMI falls one month after the start date (today by default)"""
    start = start or timezone.localdate()
    return start + relativedelta(months=1)


def compute_schedule(principal, annual_rate_percent, tenure_months, first_payment_date=None):
    """
    Compute an EMI preview for the given offer terms

    Args:
        principal: Loan amount (> 0, at most two decimal places)
        annual_rate_percent: Annual interest rate in percent (>= 0)
        tenure_months: Number of monthly installments (positive integer)
        first_payment_date: Due date of installment 1 (default: one month from today)

    Returns:
        EMIPreview

    Raises:
        InvalidOfferTermsError: before any row is produced
    """
    principal, rate, tenure = validate_offer_terms(principal, annual_rate_percent, tenure_months)
    first_payment_date = first_payment_date or default_first_payment_date()
    return _amortize(principal, rate, tenure, first_payment_date)


def monthly_rate(annual_rate_percent):
    return Decimal(annual_rate_percent) / Decimal(12) / Decimal(100)


def equated_installment(principal, rate, tenure):
    """Unrounded EMI: P × r × (1+r)^n / ((1+r)^n − 1), or P / n when r is zero"""
    if rate == 0:
        return principal / tenure
    factor = (1 + rate) ** tenure
    return principal * rate * factor / (factor - 1)


@lru_cache(maxsize=512)
def _amortize(principal, annual_rate, tenure, first_payment_date):
    rate = monthly_rate(annual_rate)
    emi = equated_installment(principal, rate, tenure)

    balance = principal
    rows = []
    for number in range(1, tenure + 1):
        interest_exact = balance * rate
        interest = round_money(interest_exact)

        if number == tenure:
            principal_part = balance
        else:
            principal_part = MoneyCalculator.round_money(emi - interest_exact, rounding=ROUND_DOWN)

        balance = balance - principal_part
        rows.append(EMIInstallment(
            installment_number=number,
            payment_date=first_payment_date + relativedelta(months=number - 1),
            payment_amount=principal_part + interest,
            principal_component=principal_part,
            interest_component=interest,
            remaining_balance=balance,
        ))

    total_interest = MoneyCalculator.sum_amounts(*(row.interest_component for row in rows))

    return EMIPreview(
        principal=principal,
        annual_rate=annual_rate,
        tenure_months=tenure,
        emi=round_money(emi),
        total_interest=total_interest,
        total_payment=principal + total_interest,
        schedule=tuple(rows),
    )


# =============================================================================
# PENALTIES
# =============================================================================

def days_late(due_date, payment_date=None):
    """Whole days past the due date, no grace period"""
    payment_date = payment_date or timezone.localdate()
    return max((payment_date - due_date).days, 0)


def days_overdue(due_date, payment_date=None, grace_days=None):
    """Whole days past the due date after the grace period"""
    if grace_days is None:
        grace_days = getattr(settings, 'LENDING_PENALTY_GRACE_DAYS', 30)
    return max(days_late(due_date, payment_date) - grace_days, 0)


def calculate_emi_breakdown(current_emi, all_emis, payment_date=None):
    """
    Amount due for one installment including penalties

    PENALTY CALCULATION:
    - Overdue penalty: a percentage of every earlier unpaid installment that
      is past the grace period (LENDING_OVERDUE_PENALTY_PERCENT, default 4%)
    - Late fee: a daily percentage of the current installment from the first
      day late (LENDING_LATE_FEE_DAILY_PERCENT, default 0.01% per day)

    Args:
        current_emi: installment being paid (EMISchedule or any object with
            emi_number, emi_amount, principal_amount, interest_amount, due_date)
        all_emis: every installment of the loan
        payment_date: date of payment (default today)

    Returns:
        dict: principal, interest, overdue, overdue_penalty, days_late,
              late_fee, penalty, total_due, emi_amount
    """
    payment_date = payment_date or timezone.localdate()
    penalty_percent = getattr(settings, 'LENDING_OVERDUE_PENALTY_PERCENT', Decimal('4'))
    daily_percent = getattr(settings, 'LENDING_LATE_FEE_DAILY_PERCENT', Decimal('0.01'))

    unpaid = (EMIStatus.PENDING, EMIStatus.OVERDUE)
    overdue_amount = MoneyCalculator.sum_amounts(*(
        emi.emi_amount for emi in all_emis
        if emi.emi_number < current_emi.emi_number
        and emi.status in unpaid
        and days_overdue(emi.due_date, payment_date) > 0
    ))
    overdue_penalty = MoneyCalculator.calculate_percentage(overdue_amount, penalty_percent)

    late = days_late(current_emi.due_date, payment_date)
    late_fee = MoneyCalculator.calculate_percentage(
        current_emi.emi_amount, Decimal(str(daily_percent)) * late
    ) if late else ZERO

    penalty = overdue_penalty + late_fee
    return {
        'principal': round_money(current_emi.principal_amount),
        'interest': round_money(current_emi.interest_amount),
        'overdue': overdue_amount,
        'overdue_penalty': overdue_penalty,
        'days_late': late,
        'late_fee': late_fee,
        'penalty': penalty,
        'total_due': round_money(current_emi.principal_amount + current_emi.interest_amount + penalty),
        'emi_amount': round_money(current_emi.emi_amount),
    }
