from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, UniqueConstraint, Index
from datetime import datetime
import enum
from database import Base


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STAFF = "staff"
    USER = "user"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProductStatus(str, enum.Enum):
    STORE = "store"
    SOLD = "sold"
    RESTORED = "restored"
    DELETED = "deleted"


class SubscriptionPlan(str, enum.Enum):
    """Canonical plan names after normalization"""
    FREE = "free"
    MONTHLY = "monthly"
    ANNUALLY = "annually"
    FOREVER = "forever"


class AuthProvider(str, enum.Enum):
    PASSWORD = "password"
    GOOGLE = "google"


class Document(Base):
    """Schema-less document keyed by an opaque id inside a named collection"""
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String(64), nullable=False)
    doc_id = Column(String(128), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('collection', 'doc_id', name='uq_collection_doc'),
        Index('idx_documents_collection', 'collection'),
    )

    def __repr__(self):
        return f"<Document {self.collection}/{self.doc_id}>"


class AuthAccount(Base):
    """
    Sign-in identity, kept apart from the profile document in `users`.

    `uid` is the key of the matching `users/{uid}` profile. `token_version`
    is embedded in every issued token; bumping it signs the account out.
    """
    __tablename__ = "auth_accounts"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String(128), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=True)  # None for federated-only accounts
    provider = Column(String(20), default=AuthProvider.PASSWORD.value, nullable=False)
    provider_subject = Column(String(255), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    env_based = Column(Boolean, default=False, nullable=False)  # Managed by BOOTSTRAP_* settings
    token_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<AuthAccount {self.email}>"
