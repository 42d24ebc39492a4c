# collabchat/services/identity.py
"""Authentication, session resolution and tenant scoping.

Every request is resolved into an immutable ``Identity`` which is then passed
explicitly into the chat services. Nothing downstream reads the session from
request globals.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import update

from collabchat.extensions import db
from collabchat.core.constants import UserRole
from collabchat.core.database import session_manager, retry_read_once, utcnow
from collabchat.core.exceptions import Unauthenticated, InvalidCredentials, ForbiddenTenant
from collabchat.core.security import generate_session_token
from collabchat.models import User, Tenant, TenantMembership, AuthSession, AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The caller of a request: user, role and the tenant it operates in"""

    session_token: str
    user_id: str
    email: str
    display_name: Optional[str]
    role: str
    active_tenant_id: Optional[str]
    expires_at: datetime
    scope_override: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def tenant_id(self) -> str:
        """Tenant every tenant-scoped query of this request is filtered by"""
        tenant_id = self.scope_override or self.active_tenant_id
        if not tenant_id:
            raise ForbiddenTenant("No tenant selected")
        return tenant_id

    def scoped_to(self, tenant_id: Optional[str]) -> "Identity":
        """Scope a single request to an explicit tenant.

        Only admins may name a tenant other than their active one, and always
        exactly one tenant per query.
        """
        if not tenant_id or tenant_id == self.active_tenant_id:
            return self
        if not self.is_admin:
            raise ForbiddenTenant()
        return replace(self, scope_override=tenant_id)


@dataclass
class LoginResult:
    token: str
    session: AuthSession
    identity: Identity


class IdentityResolver:
    """Issues, validates and mutates sessions"""

    def authenticate(self, email, password, ip_address=None, user_agent=None) -> LoginResult:
        config = current_app.config
        user = User.find_by_email(email)

        if user is None:
            logger.warning("Login failed: unknown email")
            raise InvalidCredentials()

        if user.is_locked():
            logger.warning(f"Login blocked: account {user.id} is locked")
            raise InvalidCredentials()

        if not user.is_active:
            logger.warning(f"Login blocked: account {user.id} is {user.status}")
            raise InvalidCredentials()

        if not user.verify_password(password or ""):
            with session_manager():
                user.register_failed_login(
                    config["LOGIN_MAX_ATTEMPTS"], config["LOGIN_LOCKOUT_SECONDS"]
                )
                AuditLog.log_action(
                    "login_failed",
                    "user",
                    entity_id=user.id,
                    user_id=user.id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
            logger.warning(f"Login failed: bad password for {user.id}")
            raise InvalidCredentials()

        tenant = self._default_tenant(user)
        now = utcnow()
        lifetime = config["SESSION_LIFETIME"]

        with session_manager():
            user.register_successful_login()
            session = AuthSession(
                token=generate_session_token(),
                user_id=user.id,
                active_tenant_id=tenant.id if tenant else None,
                role_snapshot=user.role,
                tenant_snapshot=tenant.snapshot() if tenant else None,
                ip_address=ip_address,
                user_agent=(user_agent or "")[:255] or None,
                created_at=now,
                last_activity=now,
                expires_at=now + lifetime,
            )
            db.session.add(session)
            AuditLog.log_action(
                "login",
                "session",
                tenant_id=session.active_tenant_id,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        token = create_access_token(
            identity=user.id,
            additional_claims={"sid": session.token},
            expires_delta=lifetime,
        )
        logger.info(f"User {user.id} logged in, active tenant {session.active_tenant_id}")
        return LoginResult(token=token, session=session, identity=self._identity(session, user))

    @retry_read_once
    def resolve(self, raw_token: Optional[str]) -> Identity:
        """Turn a bearer token into an Identity or fail closed"""
        if not raw_token:
            raise Unauthenticated()
        try:
            claims = decode_token(raw_token)
        except (JWTExtendedException, PyJWTError) as e:
            logger.info(f"Rejected bearer token: {e}")
            raise Unauthenticated()

        session_token = claims.get("sid")
        if not session_token:
            raise Unauthenticated()
        return self._load(session_token, expected_user_id=claims.get("sub"), touch=True)

    def scope(self, identity: Identity, tenant_id: Optional[str]) -> Identity:
        """Apply a per-request tenant override. The tenant must exist and be active."""
        scoped = identity.scoped_to(tenant_id)
        if scoped.scope_override is not None:
            tenant = db.session.get(Tenant, scoped.scope_override)
            if tenant is None or not tenant.is_active:
                logger.warning(
                    f"Admin {identity.user_id} named unusable tenant {scoped.scope_override}"
                )
                raise ForbiddenTenant()
        return scoped

    @retry_read_once
    def revalidate(self, identity: Identity) -> Identity:
        """Re-check a session that is already resolved (used between poll checks)"""
        fresh = self._load(identity.session_token, expected_user_id=identity.user_id)
        return self.scope(fresh, identity.scope_override)

    def switch_tenant(self, identity: Identity, tenant_id: str) -> Identity:
        if identity.role == UserRole.STANDARD_USER.value:
            raise ForbiddenTenant("Standard users cannot switch tenant")

        tenant = db.session.get(Tenant, tenant_id) if tenant_id else None
        if tenant is None or not tenant.is_active:
            raise ForbiddenTenant()

        if not identity.is_admin:
            membership = TenantMembership.query.filter_by(
                user_id=identity.user_id, tenant_id=tenant.id
            ).first()
            if membership is None:
                logger.warning(f"User {identity.user_id} denied switch to tenant {tenant.id}")
                raise ForbiddenTenant()

        with session_manager():
            result = db.session.execute(
                update(AuthSession)
                .where(
                    AuthSession.token == identity.session_token,
                    AuthSession.revoked_at.is_(None),
                )
                .values(
                    active_tenant_id=tenant.id,
                    tenant_snapshot=tenant.snapshot(),
                    role_snapshot=identity.role,
                    last_activity=utcnow(),
                )
            )
            if result.rowcount == 0:
                raise Unauthenticated()
            AuditLog.log_action(
                "switch_tenant",
                "session",
                tenant_id=tenant.id,
                user_id=identity.user_id,
                changes={"from": identity.active_tenant_id, "to": tenant.id},
            )

        logger.info(f"User {identity.user_id} switched to tenant {tenant.id}")
        return replace(identity, active_tenant_id=tenant.id, scope_override=None)

    def logout(self, identity: Identity) -> None:
        with session_manager():
            db.session.execute(
                update(AuthSession)
                .where(AuthSession.token == identity.session_token)
                .values(revoked_at=utcnow())
            )
            AuditLog.log_action(
                "logout",
                "session",
                tenant_id=identity.active_tenant_id,
                user_id=identity.user_id,
            )
        logger.info(f"User {identity.user_id} logged out")

    def revoke_user_sessions(self, user_id: str) -> int:
        """Revoke every live session of a user. The caller commits."""
        result = db.session.execute(
            update(AuthSession)
            .where(AuthSession.user_id == user_id, AuthSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        return result.rowcount

    def available_tenants(self, identity: Identity) -> List[Dict[str, Any]]:
        if identity.is_admin:
            tenants = Tenant.query.filter_by(status="active").order_by(Tenant.name).all()
            return [
                dict(t.to_dict(), is_primary=False, is_current=t.id == identity.active_tenant_id)
                for t in tenants
            ]

        memberships = (
            TenantMembership.query.filter_by(user_id=identity.user_id)
            .join(Tenant)
            .filter(Tenant.status == "active")
            .order_by(Tenant.name)
            .all()
        )
        return [
            dict(
                m.tenant.to_dict(),
                is_primary=m.is_primary,
                is_current=m.tenant_id == identity.active_tenant_id,
            )
            for m in memberships
        ]

    def _default_tenant(self, user: User) -> Optional[Tenant]:
        if user.is_admin:
            return None
        primary = user.primary_membership
        if primary is not None and primary.tenant.is_active:
            return primary.tenant
        if user.role == UserRole.SPECIAL_USER.value:
            for membership in user.memberships.join(Tenant).order_by(Tenant.name):
                if membership.tenant.is_active:
                    return membership.tenant
        return None

    def _load(self, session_token: str, expected_user_id=None, touch=False) -> Identity:
        session = db.session.get(AuthSession, session_token)
        now = utcnow()
        if session is None or not session.is_valid(now):
            raise Unauthenticated()
        if expected_user_id is not None and session.user_id != expected_user_id:
            raise Unauthenticated()

        user = db.session.get(User, session.user_id)
        if user is None or not user.is_active:
            raise Unauthenticated()

        if touch:
            granularity = timedelta(seconds=current_app.config["SESSION_ACTIVITY_GRANULARITY"])
            if now - session.last_activity > granularity:
                with session_manager():
                    db.session.execute(
                        update(AuthSession)
                        .where(AuthSession.token == session_token)
                        .values(last_activity=now)
                    )

        return self._identity(session, user)

    def _identity(self, session: AuthSession, user: User) -> Identity:
        active_tenant_id = session.active_tenant_id
        if active_tenant_id:
            # Membership or tenant status may have changed since login
            tenant = db.session.get(Tenant, active_tenant_id)
            if tenant is None or not tenant.is_active:
                active_tenant_id = None
            elif not user.is_admin and user.membership_for(active_tenant_id) is None:
                active_tenant_id = None

        return Identity(
            session_token=session.token,
            user_id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            active_tenant_id=active_tenant_id,
            expires_at=session.expires_at,
        )
