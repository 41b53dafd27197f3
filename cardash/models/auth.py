"""Auth models — users, roles, permissions, one-time passwords."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255))
    full_name = Column(String(255), default="")
    phone = Column(String(50))
    country = Column(String(100))
    address = Column(String(255))
    status = Column(String(20), default="Active")  # Active | Inactive
    avatar_url = Column(String(500))
    last_login_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=utcnow)

    user_role = relationship(
        "UserRole", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    user_permissions = relationship(
        "UserPermission", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return (self.status or "Active") == "Active"

    @property
    def role_name(self) -> str | None:
        if self.user_role and self.user_role.role:
            return self.user_role.role.name
        return None


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)  # Admin | Sales
    description = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    role_permissions = relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan"
    )


class Permission(Base):
    __tablename__ = "permissions"
    id = Column(Integer, primary_key=True)
    key = Column(String(100), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(50))  # main | users | accounting | settings
    created_at = Column(UTCDateTime, default=utcnow)


class UserRole(Base):
    __tablename__ = "user_roles"
    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User", back_populates="user_role")
    role = relationship("Role")

    __table_args__ = (Index("ix_user_roles_role", "role_id"),)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    id = Column(Integer, primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id = Column(
        Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(UTCDateTime, default=utcnow)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission")

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
        Index("ix_role_permissions_permission", "permission_id"),
    )


class UserPermission(Base):
    """Per-user permission override, used for Sales accounts."""

    __tablename__ = "user_permissions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    permission_id = Column(
        Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    granted = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User", back_populates="user_permissions")
    permission = relationship("Permission")

    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),
        Index("ix_user_permissions_user", "user_id"),
    )


class OtpVerification(Base):
    __tablename__ = "otp_verifications"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False)
    otp_code = Column(String(6), nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (Index("ix_otp_email_created", "email", "created_at"),)
