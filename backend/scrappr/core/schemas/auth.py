from __future__ import annotations

from uuid import UUID  # noqa: TCH003

from scrappr.core.models.base import AppBaseModel


class AuthUser(AppBaseModel):
    """Authenticated user extracted from a Supabase JWT."""

    id: UUID
    email: str
    role: str | None = None

    @property
    def owner(self) -> str:
        """Owner key used in document paths."""
        return str(self.id)
