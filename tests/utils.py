# tests/utils.py
from collabchat.extensions import db
from collabchat.core.constants import UserRole, UserStatus, TenantStatus
from collabchat.models import User, Tenant, TenantMembership

PASSWORD = "password123"


def make_tenant(code, name=None, status=TenantStatus.ACTIVE.value):
    tenant = Tenant(code=code, name=name or code.title(), status=status)
    db.session.add(tenant)
    db.session.commit()
    return tenant


def make_user(email, role=UserRole.STANDARD_USER.value, tenants=(), display_name=None,
              status=UserStatus.ACTIVE.value):
    """Create a user; the first tenant given becomes the primary one"""
    user = User(email=email, role=role, status=status, display_name=display_name)
    user.password = PASSWORD
    db.session.add(user)
    db.session.flush()
    for index, tenant in enumerate(tenants):
        TenantMembership.attach(user, tenant, is_primary=index == 0)
    db.session.commit()
    return user
