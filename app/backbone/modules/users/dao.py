from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from app.backbone.dao import BaseDao
from app.backbone.modules.users.models import User


class UserDao(BaseDao[User]):
    def __init__(self, sessions: sessionmaker[Session]) -> None:
        super().__init__(User, sessions)

    def find_by_username(self, username: str) -> User | None:
        return self.find_one(User.username == username)

    def find_by_email(self, email: str) -> User | None:
        return self.find_one(func.lower(User.email) == email.strip().lower())
