from collabchat.extensions import db
from collabchat.core.database import BaseModel, utcnow, isoformat
from collabchat.core.security import SecurityMixin
from collabchat.core.constants import UserRole, UserStatus
from uuid import uuid4
from datetime import timedelta


class User(BaseModel, SecurityMixin):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    email = db.Column(db.String(255), nullable=False, unique=True)
    password_hash = db.Column(db.String(255))
    display_name = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default=UserRole.STANDARD_USER.value)
    status = db.Column(db.String(20), nullable=False, default=UserStatus.PENDING.value)
    failed_login_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime)
    last_login = db.Column(db.DateTime)

    memberships = db.relationship(
        'TenantMembership',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan',
        passive_deletes=True,
    )

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def is_active(self):
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def is_locked(self, now=None):
        now = now or utcnow()
        return self.locked_until is not None and self.locked_until > now

    def register_failed_login(self, max_attempts, lockout_seconds):
        """Count a failed password and lock the account once the limit is hit"""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.locked_until = utcnow() + timedelta(seconds=lockout_seconds)
            self.failed_login_attempts = 0
        db.session.add(self)

    def register_successful_login(self):
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = utcnow()
        db.session.add(self)

    @property
    def primary_membership(self):
        return self.memberships.filter_by(is_primary=True).first()

    def membership_for(self, tenant_id):
        return self.memberships.filter_by(tenant_id=tenant_id).first()

    @staticmethod
    def find_by_email(email):
        if not email:
            return None
        return User.query.filter_by(email=email.strip().lower()).first()

    def mention_handles(self):
        """Tokens that count as an @mention of this user"""
        handles = set()
        if self.email:
            email = self.email.lower()
            handles.add(email)
            handles.add(email.split('@', 1)[0])
        if self.display_name:
            handles.add(self.display_name.replace(' ', '').lower())
            handles.add(self.display_name.split(' ', 1)[0].lower())
        return handles

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'display_name': self.display_name,
            'role': self.role,
            'status': self.status,
            'last_login': isoformat(self.last_login),
        }
