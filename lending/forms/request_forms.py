"""
Request Forms
=============

Intake of a new loan request by a customer
"""

from decimal import Decimal

from django import forms

from lending.models import LoanRequest


class LoanRequestForm(forms.ModelForm):
    """
    Form for submitting a new loan request

    Status, offer and assignment fields are never accepted here; they only
    change through workflow actions.
    """

    class Meta:
        model = LoanRequest
        fields = ['district', 'requested_amount', 'asset_type', 'asset_description']

    def clean_requested_amount(self):
        amount = self.cleaned_data['requested_amount']
        if amount is None or amount <= Decimal('0'):
            raise forms.ValidationError('Requested amount must be greater than zero')
        return amount

    def clean_district(self):
        district = self.cleaned_data['district'].strip()
        if not district:
            raise forms.ValidationError('District is required')
        return district
