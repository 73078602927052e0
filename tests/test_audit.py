from decimal import Decimal

import pytest

from lending import audit
from lending.constants import HISTORY_CORRECTION
from lending.exceptions import ValidationError
from lending.models import RequestHistory
from lending.workflow import submit_request


pytestmark = pytest.mark.django_db


def test_entries_cannot_be_edited(loan_request):
    entry = RequestHistory.objects.for_request(loan_request).get()
    entry.metadata = {'tampered': True}
    with pytest.raises(TypeError):
        entry.save()


def test_entries_cannot_be_deleted(loan_request):
    entry = RequestHistory.objects.for_request(loan_request).get()
    with pytest.raises(TypeError):
        entry.delete()


def test_bulk_update_and_delete_are_refused(loan_request):
    with pytest.raises(TypeError):
        RequestHistory.objects.filter(request=loan_request).update(action='forged')
    with pytest.raises(TypeError):
        RequestHistory.objects.filter(request=loan_request).delete()


def test_history_lists_in_insertion_order(offer_sent):
    actions = [entry.action for entry in audit.list_history(offer_sent)]
    assert actions == ['request-submitted', 'start-review', 'create-offer']


def test_metadata_is_stored_json_safe(loan_request, district_admin):
    entry = audit.record(loan_request, district_admin, 'note', {'amount': Decimal('12.50')})
    entry.refresh_from_db()
    assert entry.metadata == {'amount': '12.50'}
    assert not entry.is_transition


def test_correction_references_the_corrected_entry(offer_sent, district_admin):
    offer_entry = RequestHistory.objects.for_request(offer_sent).last()

    correction = audit.record_correction(offer_sent, district_admin, offer_entry, '  Rate was typed wrong  ')

    assert correction.action == HISTORY_CORRECTION
    assert correction.metadata == {
        'corrects_entry_id': offer_entry.pk,
        'corrected_action': 'create-offer',
        'note': 'Rate was typed wrong',
    }
    offer_entry.refresh_from_db()
    assert offer_entry.action == 'create-offer'


def test_correction_needs_a_note(offer_sent, district_admin):
    entry = RequestHistory.objects.for_request(offer_sent).last()
    with pytest.raises(ValidationError):
        audit.record_correction(offer_sent, district_admin, entry, '   ')


def test_correction_must_target_same_request(offer_sent, other_customer, district_admin):
    other_request = submit_request(other_customer, {
        'district': 'north', 'requested_amount': '1000', 'asset_type': 'Phone',
    }).request
    foreign_entry = RequestHistory.objects.for_request(other_request).get()

    with pytest.raises(ValidationError) as exc_info:
        audit.record_correction(offer_sent, district_admin, foreign_entry, 'Wrong request')
    assert 'corrected_entry' in exc_info.value.errors
