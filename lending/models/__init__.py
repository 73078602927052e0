"""
Lending Workflow - Models Package
=================================

This file imports and exposes all models for Django.
"""

from .base import BaseModel

from .all_models import (
    User,
    LoanRequest,
    OfferInstallment,
    RequestHistory,
    Loan,
    EMISchedule,
)

__all__ = [
    'BaseModel',
    'User',
    'LoanRequest',
    'OfferInstallment',
    'RequestHistory',
    'Loan',
    'EMISchedule',
]
