"""
Workflow Signals
================

``request_transitioned`` is sent once per applied transition, after the
transaction that wrote it has committed. Receivers get:

    request       the LoanRequest in its new state
    history_entry the RequestHistory row written for the transition
    action        the action id
    from_status   status before the transition
    to_status     status after the transition
"""

from django.dispatch import Signal


request_transitioned = Signal()
