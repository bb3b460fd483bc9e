"""
Website role lookups.
"""
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from webcms.core.exceptions import AuthorizationError
from webcms.models.website import WebsiteRole, WebsiteUser


class WebsiteAuthorizer:
    """Answers which role a principal holds on a website."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def role_for(self, principal_id: UUID, website_id: UUID) -> WebsiteRole | None:
        """Get the principal's role on the website, or None."""
        result = await self.db.execute(
            select(WebsiteUser.role).where(
                WebsiteUser.user_id == principal_id,
                WebsiteUser.website_id == website_id,
            )
        )
        return result.scalar_one_or_none()

    async def require_role(
        self,
        principal_id: UUID,
        website_id: UUID,
        allowed: Iterable[WebsiteRole],
        action: str,
    ) -> WebsiteRole:
        """Raise AuthorizationError unless the principal holds one of ``allowed``."""
        role = await self.role_for(principal_id, website_id)
        if role is None or role not in set(allowed):
            raise AuthorizationError(
                f"You do not have permission to {action}",
                details={"website_id": str(website_id), "role": role.value if role else None},
            )
        return role
