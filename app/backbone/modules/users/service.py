from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable

from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.backbone.errors import ConstraintViolation, NotFoundException, ValidationException
from app.backbone.modules.users.dao import UserDao
from app.backbone.modules.users.dto import CreateUserDto, UserCreatedEvent, UserInfoDto
from app.backbone.modules.users.errors import UserErrorCode
from app.backbone.modules.users.models import User
from app.backbone.utils import clean

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

# Runs inside the creating transaction; a raising listener rolls the new user back.
UserCreatedListener = Callable[[UserCreatedEvent, Session], None]


def validate_create_user(dto: CreateUserDto) -> list[str]:
    """Validate a registration payload. Returns list of errors."""
    errors = []
    if not (dto.username or "").strip():
        errors.append("Username is required.")
    elif len(dto.username.strip()) > 64:
        errors.append("Username must be at most 64 characters.")
    if not EMAIL_RE.match((dto.email or "").strip()):
        errors.append("Email is invalid.")
    if not dto.password:
        errors.append("Password is required.")
    return errors


class UserService:
    def __init__(self, user_dao: UserDao, listeners: Iterable[UserCreatedListener] = ()) -> None:
        self._users = user_dao
        self._listeners = tuple(listeners)

    def create_user(self, dto: CreateUserDto) -> bool:
        """
        Register a user and notify the user-created listeners.

        The insert and every listener share one transaction: either the user and
        whatever the listeners write are committed together, or nothing is.
        Returns True once committed; callers re-read the user with find_user().
        """
        errors = validate_create_user(dto)
        if errors:
            raise ValidationException(
                "; ".join(errors), error_code=UserErrorCode.USER_PARAM_INVALID, details={"errors": errors}
            )

        user = User(
            username=dto.username.strip(),
            email=dto.email.strip(),
            phone_number=clean(dto.phone_number),
            password=generate_password_hash(dto.password),
        )
        duplicate: ConstraintViolation | None = None
        try:
            with self._users.transaction() as s:
                try:
                    self._users.create(user, session=s)
                except ConstraintViolation as e:
                    duplicate = e
                    raise
                event = UserCreatedEvent(user_id=user.id, username=user.username, email=user.email)
                for listener in self._listeners:
                    try:
                        listener(event, s)
                    except Exception:
                        logger.exception("user.created listener %r failed; rolling back user %s", listener, user.username)
                        raise
        except ConstraintViolation as e:
            if e is duplicate:
                raise self._duplicate_error(user.username, user.email, e) from e
            raise

        logger.info("User created: id=%s username=%s", user.id, user.username)
        return True

    def find_user(self, username: str) -> UserInfoDto | None:
        user = self._users.find_by_username((username or "").strip())
        return UserInfoDto.from_entity(user) if user else None

    def find_user_by_id(self, user_id: int) -> UserInfoDto | None:
        user = self._users.find_by_id(user_id)
        return UserInfoDto.from_entity(user) if user else None

    def get_user(self, user_id: int) -> UserInfoDto:
        info = self.find_user_by_id(user_id)
        if info is None:
            raise NotFoundException(error_code=UserErrorCode.USER_NOT_FOUND, details={"user_id": user_id})
        return info

    def verify_credentials(self, username: str, password: str) -> UserInfoDto | None:
        user = self._users.find_by_username((username or "").strip())
        if not user or not check_password_hash(user.password, password):
            return None
        return UserInfoDto.from_entity(user)

    def update_user(self, user_id: int, *, email: str | None = None, phone_number: str | None = None) -> bool:
        user = self._users.find_by_id(user_id)
        if not user:
            return False
        if email is not None:
            email = email.strip()
            if not EMAIL_RE.match(email):
                raise ValidationException("Email is invalid.", field="email", error_code=UserErrorCode.USER_PARAM_INVALID)
            user.email = email
        if phone_number is not None:
            user.phone_number = clean(phone_number)
        try:
            return self._users.update(user)
        except ConstraintViolation as e:
            raise self._duplicate_error(None, user.email, e) from e

    def delete_user(self, user_id: int) -> bool:
        deleted = self._users.soft_delete(user_id)
        if deleted:
            logger.info("User soft-deleted: id=%s", user_id)
        return deleted

    def _duplicate_error(self, username: str | None, email: str, cause: ConstraintViolation) -> ConstraintViolation:
        if username and self._users.find_by_username(username) is not None:
            code = UserErrorCode.USER_USERNAME_EXISTS
        elif self._users.find_by_email(email) is not None:
            code = UserErrorCode.USER_EMAIL_EXISTS
        else:
            code = UserErrorCode.USER_EXISTS
        return ConstraintViolation(error_code=code, details=cause.details)
