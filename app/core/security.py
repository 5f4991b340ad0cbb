import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Any, Callable, Dict, List, Optional

from jose import jwt, JWTError

from app.core.config import settings


@dataclass(frozen=True)
class PasswordCriterion:
    """A single rule of the password strength indicator"""

    label: str
    test: Callable[[str], bool]

    def check(self, password: str) -> bool:
        return self.test(password)


def _contains(pattern: str) -> Callable[[str], bool]:
    # ASCII classes: digits and letters from other scripts do not count
    regex = re.compile(pattern, re.ASCII)
    return lambda password: regex.search(password) is not None


PASSWORD_CRITERIA: List[PasswordCriterion] = [
    PasswordCriterion("At least 8 characters", lambda password: len(password) >= 8),
    PasswordCriterion("Contains uppercase letter", _contains(r"[A-Z]")),
    PasswordCriterion("Contains lowercase letter", _contains(r"[a-z]")),
    PasswordCriterion("Contains number", _contains(r"\d")),
    PasswordCriterion(
        "Contains special character",
        _contains(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]"),
    ),
]

# (label, colour) per number of criteria met; 0 and 1 share the lowest level
STRENGTH_LEVELS = {
    0: ("Very Weak", "red"),
    1: ("Very Weak", "red"),
    2: ("Weak", "orange"),
    3: ("Fair", "yellow"),
    4: ("Good", "blue"),
    5: ("Strong", "green"),
}


class PasswordManager:
    """Password strength utilities"""

    @staticmethod
    def evaluate_strength(password: str) -> Optional[Dict[str, Any]]:
        """
        Score a password against the strength criteria.
        :param password: The password being typed.
        :return: Score, percentage, label, colour and per-criterion results,
            or None for an empty password (nothing to show yet).
        """
        if not password:
            return None

        results = [
            {"label": criterion.label, "met": criterion.check(password)}
            for criterion in PASSWORD_CRITERIA
        ]
        score = sum(1 for result in results if result["met"])
        label, color = STRENGTH_LEVELS[score]

        return {
            "score": score,
            "max_score": len(PASSWORD_CRITERIA),
            "percentage": score / len(PASSWORD_CRITERIA) * 100,
            "label": label,
            "color": color,
            "strong": PasswordManager.validate_password_strength(password),
            "criteria": results,
        }

    @staticmethod
    def validate_password_strength(password: str) -> bool:
        """
        Check whether a password meets every criterion.
        :param password: The password string to validate.
        :return: True only for a "Strong" password.
        """
        return all(criterion.check(password) for criterion in PASSWORD_CRITERIA)


class TokenManager:
    """Reading backend-issued JWT access tokens with python-jose"""

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """
        Decode an access token issued by the backend auth service.
        The signature is verified only when the backend JWT secret is configured;
        the backend re-validates every token it receives either way.
        :param token: The JWT token to decode.
        :return: The token claims.
        """
        try:
            if settings.BACKEND_JWT_SECRET:
                return jwt.decode(
                    token,
                    settings.BACKEND_JWT_SECRET,
                    algorithms=["HS256"],
                    options={"verify_aud": False, "verify_exp": False},
                )
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            raise ValueError(f"Invalid token: {str(e)}")

    @staticmethod
    def get_token_expiry(token: str) -> Optional[datetime]:
        """
        Get the expiry time of an access token.
        :param token: The JWT token.
        :return: Expiry as an aware datetime, or None if the token has no ``exp``.
        """
        exp = TokenManager.decode_token(token).get("exp")
        if exp is None:
            return None
        return datetime.fromtimestamp(int(exp), UTC)

    @staticmethod
    def is_token_expiring(token: str, margin_seconds: Optional[int] = None) -> bool:
        """
        Check whether an access token is expired or about to expire.
        :param token: The JWT token.
        :param margin_seconds: How early to treat the token as expired.
        :return: True if the token should be refreshed.
        """
        if margin_seconds is None:
            margin_seconds = settings.SESSION_REFRESH_MARGIN_SECONDS
        try:
            expiry = TokenManager.get_token_expiry(token)
        except ValueError:
            return True
        if expiry is None:
            return False
        return expiry <= datetime.now(UTC) + timedelta(seconds=margin_seconds)


def generate_session_token() -> str:
    """
    Generate the opaque token that identifies a server-side session.
    """
    return secrets.token_urlsafe(32)
