import pytest
from django.core.exceptions import ValidationError

from lending.constants import Role
from lending.models import User


pytestmark = pytest.mark.django_db


def test_agents_in_district(agent, other_agent, south_agent, district_admin, make_user):
    retired = make_user([Role.AGENT], ['north'], is_active=False)

    north = set(User.objects.agents_in_district('north'))

    assert north == {agent, other_agent}
    assert retired not in north
    assert list(User.objects.agents_in_district('east')) == []


def test_unknown_roles_fail_validation(make_user):
    user = make_user([Role.CUSTOMER])
    user.roles = [Role.CUSTOMER, 'JANITOR']
    with pytest.raises(ValidationError) as exc_info:
        user.full_clean()
    assert 'roles' in exc_info.value.message_dict


def test_system_role_is_never_stored(make_user):
    user = make_user([Role.CUSTOMER])
    user.roles = [Role.SYSTEM]
    with pytest.raises(ValidationError):
        user.full_clean()


def test_create_superuser_defaults_to_super_admin():
    user = User.objects.create_superuser('Root@Example.COM', 'secret')
    assert user.email == 'Root@example.com'
    assert user.is_super_admin
    assert user.is_staff


def test_user_requires_email():
    with pytest.raises(ValueError):
        User.objects.create_user('')
