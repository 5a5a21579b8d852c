"""Authenticated principal models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Platform roles carried in the access token."""

    EXPERT = "expert"
    CLIENT = "client"
    ADMIN = "admin"


class Principal(BaseModel):
    """The caller of an operation, as asserted by the external auth system."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Opaque user ID (token subject)")
    role: Role = Field(..., description="Caller role")

    @property
    def is_expert(self) -> bool:
        """Check if the caller acts as an expert."""
        return self.role == Role.EXPERT

    @property
    def is_admin(self) -> bool:
        """Check if the caller is an administrator."""
        return self.role == Role.ADMIN
