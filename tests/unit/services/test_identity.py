# tests/unit/services/test_identity.py
import pytest
from datetime import timedelta
from flask_jwt_extended import create_access_token

from collabchat.extensions import db
from collabchat.core.constants import TenantStatus, UserStatus
from collabchat.core.database import utcnow
from collabchat.core.exceptions import Unauthenticated, InvalidCredentials, ForbiddenTenant
from collabchat.models import AuthSession, AuditLog, TenantMembership
from tests.utils import PASSWORD


def test_authenticate_standard_user_lands_in_primary_tenant(services, alice, tenant_one):
    """A standard user is bound to their only tenant at login"""
    result = services.identity.authenticate("alice@example.com", PASSWORD)

    assert result.token
    assert result.identity.user_id == alice.id
    assert result.identity.active_tenant_id == tenant_one.id
    assert result.session.tenant_snapshot["code"] == "acme"
    assert result.session.role_snapshot == "standard_user"


def test_authenticate_is_case_insensitive_on_email(services, alice):
    result = services.identity.authenticate("Alice@Example.com", PASSWORD)
    assert result.identity.user_id == alice.id


def test_authenticate_admin_has_no_tenant(services, admin_user):
    result = services.identity.authenticate("admin@example.com", PASSWORD)
    assert result.identity.active_tenant_id is None
    assert result.identity.is_admin


def test_authenticate_special_user_uses_primary_membership(services, special_user, tenant_one):
    result = services.identity.authenticate("sam@example.com", PASSWORD)
    assert result.identity.active_tenant_id == tenant_one.id


def test_special_user_falls_back_when_primary_tenant_inactive(
    services, special_user, tenant_one, tenant_two
):
    tenant_one.status = TenantStatus.INACTIVE.value
    db.session.commit()

    result = services.identity.authenticate("sam@example.com", PASSWORD)
    assert result.identity.active_tenant_id == tenant_two.id


def test_authenticate_failures_are_indistinguishable(services, alice):
    """Unknown email and wrong password raise the same error"""
    with pytest.raises(InvalidCredentials) as unknown:
        services.identity.authenticate("nobody@example.com", PASSWORD)
    with pytest.raises(InvalidCredentials) as wrong:
        services.identity.authenticate("alice@example.com", "wrong-password")

    assert unknown.value.to_dict() == wrong.value.to_dict()
    assert AuditLog.query.filter_by(action="login_failed", user_id=alice.id).count() == 1


def test_authenticate_rejects_inactive_user(services, alice):
    alice.status = UserStatus.INACTIVE.value
    db.session.commit()

    with pytest.raises(InvalidCredentials):
        services.identity.authenticate("alice@example.com", PASSWORD)


def test_repeated_failures_lock_the_account(app, services, alice):
    app.config["LOGIN_MAX_ATTEMPTS"] = 3
    for _ in range(3):
        with pytest.raises(InvalidCredentials):
            services.identity.authenticate("alice@example.com", "wrong-password")

    assert alice.is_locked()
    # Even the right password is refused while locked
    with pytest.raises(InvalidCredentials):
        services.identity.authenticate("alice@example.com", PASSWORD)


def test_resolve_returns_identity(services, alice, tenant_one):
    result = services.identity.authenticate("alice@example.com", PASSWORD)

    identity = services.identity.resolve(result.token)

    assert identity.user_id == alice.id
    assert identity.tenant_id == tenant_one.id
    assert identity.session_token == result.session.token


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_resolve_rejects_malformed_tokens(services, token):
    with pytest.raises(Unauthenticated):
        services.identity.resolve(token)


def test_resolve_rejects_token_without_session_claim(services, alice):
    token = create_access_token(identity=alice.id)
    with pytest.raises(Unauthenticated):
        services.identity.resolve(token)


def test_resolve_rejects_revoked_session(services, alice):
    result = services.identity.authenticate("alice@example.com", PASSWORD)
    services.identity.logout(result.identity)

    with pytest.raises(Unauthenticated):
        services.identity.resolve(result.token)


def test_resolve_rejects_expired_session(services, alice):
    result = services.identity.authenticate("alice@example.com", PASSWORD)
    session = db.session.get(AuthSession, result.session.token)
    session.expires_at = utcnow() - timedelta(seconds=1)
    db.session.commit()

    with pytest.raises(Unauthenticated):
        services.identity.resolve(result.token)


def test_resolve_rejects_deactivated_user(services, alice):
    result = services.identity.authenticate("alice@example.com", PASSWORD)
    alice.status = UserStatus.INACTIVE.value
    db.session.commit()

    with pytest.raises(Unauthenticated):
        services.identity.resolve(result.token)


def test_resolve_drops_tenant_of_removed_membership(services, special_user, tenant_one):
    result = services.identity.authenticate("sam@example.com", PASSWORD)
    TenantMembership.detach(special_user, tenant_one)
    db.session.commit()

    identity = services.identity.resolve(result.token)

    assert identity.active_tenant_id is None
    with pytest.raises(ForbiddenTenant):
        identity.tenant_id


def test_switch_tenant_for_special_user(services, special_user, tenant_two, login):
    identity = login(special_user)

    switched = services.identity.switch_tenant(identity, tenant_two.id)

    assert switched.active_tenant_id == tenant_two.id
    session = db.session.get(AuthSession, identity.session_token)
    assert session.active_tenant_id == tenant_two.id
    assert session.tenant_snapshot["code"] == "globex"
    assert AuditLog.query.filter_by(action="switch_tenant", user_id=special_user.id).count() == 1


def test_switch_tenant_is_visible_to_later_resolves(services, special_user, tenant_two):
    result = services.identity.authenticate("sam@example.com", PASSWORD)
    services.identity.switch_tenant(result.identity, tenant_two.id)

    assert services.identity.resolve(result.token).active_tenant_id == tenant_two.id


def test_switch_tenant_denied_for_standard_user(services, alice, tenant_two, login):
    identity = login(alice)
    with pytest.raises(ForbiddenTenant):
        services.identity.switch_tenant(identity, tenant_two.id)


def test_switch_tenant_denied_without_membership(services, special_user, tenant_three, login):
    identity = login(special_user)
    with pytest.raises(ForbiddenTenant):
        services.identity.switch_tenant(identity, tenant_three.id)


def test_failed_switch_keeps_active_tenant(services, special_user, tenant_one, tenant_three, login):
    identity = login(special_user)
    with pytest.raises(ForbiddenTenant):
        services.identity.switch_tenant(identity, tenant_three.id)

    assert services.identity.revalidate(identity).tenant_id == tenant_one.id
    assert db.session.get(AuthSession, identity.session_token).active_tenant_id == tenant_one.id


def test_switch_tenant_denied_for_unknown_or_inactive_tenant(
    services, special_user, tenant_two, login
):
    identity = login(special_user)
    with pytest.raises(ForbiddenTenant):
        services.identity.switch_tenant(identity, "missing-tenant")

    tenant_two.status = TenantStatus.INACTIVE.value
    db.session.commit()
    with pytest.raises(ForbiddenTenant):
        services.identity.switch_tenant(identity, tenant_two.id)


def test_admin_can_switch_to_any_tenant(services, admin_user, tenant_three, login):
    identity = login(admin_user)
    switched = services.identity.switch_tenant(identity, tenant_three.id)
    assert switched.active_tenant_id == tenant_three.id


def test_switch_tenant_on_revoked_session(services, special_user, tenant_two, login):
    identity = login(special_user)
    services.identity.logout(identity)

    with pytest.raises(Unauthenticated):
        services.identity.switch_tenant(identity, tenant_two.id)


def test_scoped_to_is_admin_only(admin_user, alice, tenant_one, tenant_two, login):
    standard = login(alice)
    assert standard.scoped_to(None) is standard
    assert standard.scoped_to(tenant_one.id) is standard
    with pytest.raises(ForbiddenTenant):
        standard.scoped_to(tenant_two.id)

    admin = login(admin_user)
    scoped = admin.scoped_to(tenant_two.id)
    assert scoped.tenant_id == tenant_two.id
    assert scoped.active_tenant_id is None


def test_admin_without_tenant_cannot_run_tenant_queries(admin_user, login):
    with pytest.raises(ForbiddenTenant):
        login(admin_user).tenant_id


def test_revoke_user_sessions(services, alice):
    first = services.identity.authenticate("alice@example.com", PASSWORD)
    second = services.identity.authenticate("alice@example.com", PASSWORD)

    revoked = services.identity.revoke_user_sessions(alice.id)
    db.session.commit()

    assert revoked == 2
    for result in (first, second):
        with pytest.raises(Unauthenticated):
            services.identity.resolve(result.token)


def test_revalidate_keeps_request_scope(services, admin_user, tenant_one, login):
    identity = login(admin_user).scoped_to(tenant_one.id)
    assert services.identity.revalidate(identity).tenant_id == tenant_one.id


def test_scope_rejects_unknown_or_inactive_tenant(services, admin_user, tenant_two, login):
    admin = login(admin_user)
    with pytest.raises(ForbiddenTenant):
        services.identity.scope(admin, "no-such-tenant")

    assert services.identity.scope(admin, tenant_two.id).tenant_id == tenant_two.id

    tenant_two.status = TenantStatus.INACTIVE.value
    db.session.commit()
    with pytest.raises(ForbiddenTenant):
        services.identity.scope(admin, tenant_two.id)


def test_revalidate_drops_scope_of_deactivated_tenant(services, admin_user, tenant_one, login):
    identity = services.identity.scope(login(admin_user), tenant_one.id)

    tenant_one.status = TenantStatus.INACTIVE.value
    db.session.commit()

    with pytest.raises(ForbiddenTenant):
        services.identity.revalidate(identity)


def test_admin_loses_deactivated_active_tenant(services, admin_user, tenant_three):
    result = services.identity.authenticate("admin@example.com", PASSWORD)
    services.identity.switch_tenant(result.identity, tenant_three.id)

    tenant_three.status = TenantStatus.INACTIVE.value
    db.session.commit()

    assert services.identity.resolve(result.token).active_tenant_id is None


def test_available_tenants(services, special_user, admin_user, tenant_one, tenant_two, tenant_three, login):
    tenants = services.identity.available_tenants(login(special_user))
    assert {t["code"] for t in tenants} == {"acme", "globex"}
    current = [t for t in tenants if t["is_current"]]
    assert len(current) == 1 and current[0]["id"] == tenant_one.id

    admin_tenants = services.identity.available_tenants(login(admin_user))
    assert {t["code"] for t in admin_tenants} == {"acme", "globex", "initech"}
