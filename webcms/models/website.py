"""
Website (tenant root) and the user-to-website role association.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID

from webcms.models.base import Base, BaseModel


class WebsiteRole(str, PyEnum):
    OWNER = "owner"
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    EDITOR = "editor"
    USER = "user"


# Roles allowed to change content below the website root
EDITOR_ROLES = frozenset({
    WebsiteRole.OWNER,
    WebsiteRole.SUPER_ADMIN,
    WebsiteRole.ADMIN,
    WebsiteRole.EDITOR,
})


class Website(Base, BaseModel):
    """Root content container owned by one tenant."""

    __tablename__ = "websites"

    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    phone_number = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    email = Column(String(255), nullable=True)
    sector = Column(String(100), nullable=True)
    logo = Column(String(1024), nullable=True)
    metadata_ = Column("metadata", JSONB, default=dict)

    def __repr__(self) -> str:
        return f"<Website {self.name}>"


class WebsiteUser(Base, BaseModel):
    """Binds a user to a website with a role."""

    __tablename__ = "website_users"
    __table_args__ = (
        UniqueConstraint("user_id", "website_id", name="uq_website_users_user_website"),
    )

    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    website_id = Column(
        UUID(as_uuid=True),
        ForeignKey("websites.id"),
        nullable=False,
        index=True,
    )
    role = Column(
        Enum(WebsiteRole),
        default=WebsiteRole.EDITOR,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<WebsiteUser {self.user_id} on {self.website_id} ({self.role.value})>"
