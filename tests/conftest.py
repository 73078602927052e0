from datetime import timedelta

import pytest
from django.utils import timezone

from lending.constants import Role
from lending.models import User
from lending.workflow import apply_action, submit_request


OFFER_TERMS = {'amount': '45000', 'tenure_months': 6, 'interest_rate': '12'}


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make_user(roles, districts=(), **extra):
        counter['n'] += 1
        return User.objects.create_user(
            email=f"user{counter['n']}@example.com",
            password='secret',
            roles=[str(role) for role in roles],
            districts=list(districts),
            **extra,
        )
    return _make_user


@pytest.fixture
def customer(make_user):
    return make_user([Role.CUSTOMER])


@pytest.fixture
def other_customer(make_user):
    return make_user([Role.CUSTOMER])


@pytest.fixture
def district_admin(make_user):
    return make_user([Role.DISTRICT_ADMIN], ['north'])


@pytest.fixture
def other_district_admin(make_user):
    return make_user([Role.DISTRICT_ADMIN], ['south'])


@pytest.fixture
def super_admin(make_user):
    return make_user([Role.SUPER_ADMIN])


@pytest.fixture
def agent(make_user):
    return make_user([Role.AGENT], ['north'])


@pytest.fixture
def other_agent(make_user):
    return make_user([Role.AGENT], ['north'])


@pytest.fixture
def south_agent(make_user):
    return make_user([Role.AGENT], ['south'])


@pytest.fixture
def loan_request(customer):
    return submit_request(customer, {
        'district': 'north',
        'requested_amount': '50000',
        'asset_type': 'Gold',
        'asset_description': '22 carat necklace',
    }).request


@pytest.fixture
def offer_sent(loan_request, district_admin):
    apply_action(loan_request, 'start-review', district_admin, Role.DISTRICT_ADMIN)
    apply_action(loan_request, 'create-offer', district_admin, Role.DISTRICT_ADMIN, OFFER_TERMS)
    return loan_request


@pytest.fixture
def offer_accepted(offer_sent, customer):
    apply_action(offer_sent, 'accept-offer', customer, Role.CUSTOMER)
    return offer_sent


@pytest.fixture
def inspection_scheduled(offer_accepted, district_admin, agent):
    apply_action(offer_accepted, 'assign-agent', district_admin, Role.DISTRICT_ADMIN, {'agent_id': agent.pk})
    return offer_accepted


@pytest.fixture
def approved(inspection_scheduled, agent):
    apply_action(inspection_scheduled, 'start-inspection', agent, Role.AGENT)
    apply_action(inspection_scheduled, 'complete-inspection', agent, Role.AGENT, {'notes': 'Asset verified'})
    apply_action(inspection_scheduled, 'approve', agent, Role.AGENT)
    return inspection_scheduled


@pytest.fixture
def processing(offer_accepted, district_admin):
    apply_action(offer_accepted, 'finalize', district_admin, Role.DISTRICT_ADMIN)
    return offer_accepted


@pytest.fixture
def active(processing, district_admin):
    first_emi_date = timezone.localdate() + timedelta(days=1)
    apply_action(processing, 'transfer-amount', district_admin, Role.DISTRICT_ADMIN, {'reference': 'UTR1'})
    apply_action(processing, 'confirm-transfer', district_admin, Role.DISTRICT_ADMIN, {'reference': 'UTR1'})
    apply_action(processing, 'activate-loan', district_admin, Role.DISTRICT_ADMIN,
                 {'first_emi_date': first_emi_date.isoformat()})
    return processing
