from collabchat.extensions import db
from collabchat.core.database import BaseModel
from collabchat.core.constants import TenantStatus
from uuid import uuid4


class Tenant(BaseModel):
    __tablename__ = "tenants"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TenantStatus.ACTIVE.value)

    memberships = db.relationship(
        "TenantMembership",
        backref="tenant",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Tenant {self.code}>"

    @property
    def is_active(self):
        return self.status == TenantStatus.ACTIVE.value

    def snapshot(self):
        """Minimal view cached on sessions"""
        return {"id": self.id, "code": self.code, "name": self.name}

    def to_dict(self):
        """Convert tenant to dictionary representation"""
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "status": self.status,
        }
