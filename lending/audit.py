"""
Audit Trail
===========

Append-only history of everything that happens to a request. Entries are
written inside the caller's transaction, so a transition and its entry are
committed or rolled back together.

Corrections never edit an entry; they append a ``correction`` entry whose
metadata points at the entry being corrected.
"""

import json
import logging

from django.core.serializers.json import DjangoJSONEncoder

from lending.constants import HISTORY_CORRECTION
from lending.exceptions import ValidationError
from lending.models import RequestHistory


logger = logging.getLogger(__name__)


def _json_safe(metadata):
    # Decimals and dates become strings, exactly as DjangoJSONEncoder renders them
    return json.loads(json.dumps(metadata or {}, cls=DjangoJSONEncoder))


def record(loan_request, actor, action, metadata=None):
    """
    Append one history entry

    Args:
        loan_request: LoanRequest the entry belongs to
        actor: User, or None for system-initiated actions
        action: action tag (an ActionType value or another history tag)
        metadata: structured details, serialized to JSON-safe values

    Returns:
        RequestHistory
    """
    return RequestHistory.objects.create(
        request=loan_request,
        actor=actor,
        action=action,
        metadata=_json_safe(metadata),
    )


def list_history(loan_request):
    """Every entry for the request in insertion order"""
    return list(RequestHistory.objects.for_request(loan_request).select_related('actor'))


def record_correction(loan_request, actor, corrected_entry, note):
    """
    Append a correction referencing an earlier entry of the same request

    Raises:
        ValidationError: entry belongs to another request, or note is empty
    """
    if corrected_entry.request_id != loan_request.pk:
        raise ValidationError(
            'Corrected entry belongs to a different request',
            errors={'corrected_entry': ['Entry does not belong to this request']},
        )
    if not note or not str(note).strip():
        raise ValidationError('A correction needs a note', errors={'note': ['This field is required.']})

    entry = record(loan_request, actor, HISTORY_CORRECTION, {
        'corrects_entry_id': corrected_entry.pk,
        'corrected_action': corrected_entry.action,
        'note': str(note).strip(),
    })
    logger.info(f"Correction {entry.pk} recorded for history entry {corrected_entry.pk} on {loan_request.request_number}")
    return entry
