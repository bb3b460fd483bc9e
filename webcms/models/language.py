"""
Languages enabled for a website.
"""
from sqlalchemy import Boolean, Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from webcms.models.base import Base, BaseModel


class Language(Base, BaseModel):
    """A language a website publishes content in."""

    __tablename__ = "languages"
    __table_args__ = (
        UniqueConstraint("website_id", "language_code", name="uq_languages_website_code"),
    )

    website_id = Column(
        UUID(as_uuid=True),
        ForeignKey("websites.id"),
        nullable=False,
        index=True,
    )
    language = Column(String(100), nullable=False)
    language_code = Column(String(10), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Language {self.language_code}>"
