import pytest

from collabchat.extensions import db
from collabchat.core.constants import UserRole
from collabchat.core.exceptions import ValidationError
from collabchat.models import TenantMembership
from tests.utils import make_user


def test_standard_user_has_exactly_one_primary_tenant(alice, tenant_one, tenant_two):
    memberships = alice.memberships.all()
    assert len(memberships) == 1
    assert memberships[0].is_primary is True
    assert alice.primary_membership.tenant_id == tenant_one.id

    with pytest.raises(ValidationError):
        TenantMembership.attach(alice, tenant_two)


def test_standard_user_cannot_be_detached(alice, tenant_one):
    with pytest.raises(ValidationError):
        TenantMembership.detach(alice, tenant_one)


def test_duplicate_membership_is_rejected(special_user, tenant_one):
    with pytest.raises(ValidationError):
        TenantMembership.attach(special_user, tenant_one)


def test_special_user_keeps_a_single_primary(special_user, tenant_one, tenant_two, tenant_three):
    assert special_user.primary_membership.tenant_id == tenant_one.id

    TenantMembership.attach(special_user, tenant_three, is_primary=True)
    db.session.commit()

    primaries = special_user.memberships.filter_by(is_primary=True).all()
    assert [m.tenant_id for m in primaries] == [tenant_three.id]
    assert special_user.memberships.count() == 3


def test_first_membership_of_special_user_becomes_primary(tenant_two):
    user = make_user("first@example.com", role=UserRole.SPECIAL_USER.value)
    membership = TenantMembership.attach(user, tenant_two)
    db.session.commit()

    assert membership.is_primary is True


def test_detach_special_user(special_user, tenant_two, tenant_three):
    assert TenantMembership.detach(special_user, tenant_two) is True
    db.session.commit()

    assert special_user.membership_for(tenant_two.id) is None
    # Nothing to remove
    assert TenantMembership.detach(special_user, tenant_three) is False


def test_mention_handles(alice):
    assert alice.mention_handles() == {"alice@example.com", "alice", "alicesmith"}


def test_password_is_write_only(alice):
    with pytest.raises(AttributeError):
        alice.password
    assert alice.verify_password("password123")
    assert not alice.verify_password("nope")
