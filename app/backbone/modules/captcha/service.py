"""
Arithmetic captcha.

``get()`` issues a token and a question. ``check()`` compares the answer once:
the challenge is consumed either way and, on success, the token is marked as
verified. ``verify()`` spends that mark, so a solved captcha gates exactly one
protected operation.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from app.backbone.errors import BusinessException, ValidationException
from app.backbone.modules.captcha.cache import CaptchaCache
from app.backbone.modules.captcha.errors import CaptchaErrorCode

logger = logging.getLogger(__name__)

_CHALLENGE_PREFIX = "captcha:challenge:"
_VERIFIED_PREFIX = "captcha:verified:"


@dataclass(frozen=True)
class CaptchaChallenge:
    token: str
    question: str
    expires_in_seconds: int


class CaptchaService:
    def __init__(self, cache: CaptchaCache, expires_in_seconds: int = 120) -> None:
        if expires_in_seconds <= 0:
            raise ValueError("expires_in_seconds must be positive")
        self._cache = cache
        self._expires_in_seconds = expires_in_seconds
        self._rng = secrets.SystemRandom()

    def get(self) -> CaptchaChallenge:
        a = self._rng.randint(1, 9)
        b = self._rng.randint(1, 9)
        if self._rng.random() < 0.5:
            question, answer = f"{a} + {b} = ?", a + b
        else:
            a, b = max(a, b), min(a, b)
            question, answer = f"{a} - {b} = ?", a - b
        token = secrets.token_urlsafe(16)
        self._cache.set(_CHALLENGE_PREFIX + token, str(answer), self._expires_in_seconds)
        return CaptchaChallenge(token=token, question=question, expires_in_seconds=self._expires_in_seconds)

    def check(self, token: str, answer: str) -> None:
        """Raise a captcha error unless ``answer`` solves the live challenge behind ``token``."""
        if not token or answer is None:
            raise ValidationException(error_code=CaptchaErrorCode.CAPTCHA_PARAM_INVALID)
        key = _CHALLENGE_PREFIX + token
        entry = self._cache.pop_entry(key)
        if entry is None:
            raise BusinessException(error_code=CaptchaErrorCode.CAPTCHA_INVALID)
        if not entry.is_not_expired():
            raise BusinessException(error_code=CaptchaErrorCode.CAPTCHA_EXPIRED)
        if str(answer).strip() != entry.value:
            logger.info("Captcha mismatch for token=%s", token[:6])
            raise BusinessException(error_code=CaptchaErrorCode.CAPTCHA_MISMATCH)
        self._cache.set(_VERIFIED_PREFIX + token, "1", self._expires_in_seconds)

    def verify(self, token: str) -> bool:
        """True once per solved token."""
        if not token:
            return False
        return self._cache.take(_VERIFIED_PREFIX + token) is not None
