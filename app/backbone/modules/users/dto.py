from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.backbone.modules.users.models import User


@dataclass(frozen=True)
class CreateUserDto:
    username: str
    email: str
    password: str
    phone_number: str | None = None


@dataclass
class UserInfoDto:
    """Public view of a user. The password hash never leaves the service."""

    id: int
    username: str
    email: str
    phone_number: str | None
    created_at: datetime

    @classmethod
    def from_entity(cls, user: "User") -> "UserInfoDto":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            phone_number=user.phone_number,
            created_at=user.created_at,
        )


@dataclass(frozen=True)
class UserCreatedEvent:
    user_id: int
    username: str
    email: str
