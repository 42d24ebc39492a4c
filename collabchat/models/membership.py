from collabchat.extensions import db
from collabchat.core.database import BaseModel
from collabchat.core.constants import UserRole
from collabchat.core.exceptions import ValidationError
from uuid import uuid4


class TenantMembership(BaseModel):
    """User <-> tenant association with a primary flag"""

    __tablename__ = 'tenant_memberships'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    tenant_id = db.Column(db.String(36), db.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'tenant_id', name='uq_membership_user_tenant'),
        db.Index('idx_membership_tenant', 'tenant_id'),
    )

    def __repr__(self):
        return f'<TenantMembership user={self.user_id} tenant={self.tenant_id}>'

    @classmethod
    def attach(cls, user, tenant, is_primary=False):
        """Associate a user with a tenant, enforcing the per-role invariants.

        standard_user: exactly one membership, always primary.
        special_user: any number, at most one primary.
        admin: allowed but ignored by authorization.
        The caller commits.
        """
        existing = user.memberships.all()
        if any(m.tenant_id == tenant.id for m in existing):
            raise ValidationError(f"User is already a member of tenant: {tenant.code}")

        if user.role == UserRole.STANDARD_USER.value:
            if existing:
                raise ValidationError("A standard user belongs to exactly one tenant")
            is_primary = True
        elif is_primary or not any(m.is_primary for m in existing):
            # First membership of a special user becomes primary
            is_primary = True
            for membership in existing:
                if membership.is_primary:
                    membership.is_primary = False
                    db.session.add(membership)

        membership = cls(user_id=user.id, tenant_id=tenant.id, is_primary=is_primary)
        db.session.add(membership)
        return membership

    @classmethod
    def detach(cls, user, tenant):
        """Remove a membership; a standard user's only membership cannot be removed"""
        membership = user.membership_for(tenant.id)
        if membership is None:
            return False
        if user.role == UserRole.STANDARD_USER.value:
            raise ValidationError("A standard user must keep exactly one tenant")
        db.session.delete(membership)
        return True

    def to_dict(self):
        return {
            'tenant_id': self.tenant_id,
            'tenant_code': self.tenant.code if self.tenant else None,
            'tenant_name': self.tenant.name if self.tenant else None,
            'is_primary': self.is_primary,
        }
