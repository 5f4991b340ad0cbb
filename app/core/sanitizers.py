import re
import html
import unicodedata
from typing import Any, Dict, Literal
from urllib.parse import urlparse, urlunparse

import bleach  # type: ignore[import]

# Fields passed through untouched; secrets must reach the backend byte for byte
RAW_FIELDS = {"password", "refresh_token", "access_token"}


class BaseSanitizer:
    """Base sanitizer class with common sanitization utilities"""

    @staticmethod
    def normalize_unicode(
        value: str, form: Literal["NFC", "NFD", "NFKC", "NFKD"] = "NFC"
    ) -> str:
        return unicodedata.normalize(form, value) if value else ""

    @staticmethod
    def remove_null_bytes(value: str) -> str:
        return value.replace("\x00", "") if value else ""

    @staticmethod
    def strip_markup(value: str) -> str:
        """
        Remove HTML tags and decode entities, leaving plain text.
        :param value: The input string.
        :return: Text without markup.
        """
        if not value or "<" not in value:
            return value
        return html.unescape(bleach.clean(value, tags=[], strip=True))


class TextSanitizer(BaseSanitizer):
    """Sanitizer for names, titles and descriptions"""

    CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
    EXCESSIVE_WHITESPACE = re.compile(r"\s+")

    @classmethod
    def sanitize_basic_text(cls, text: str) -> str:
        """
        Single-line text: markup, control characters and runs of whitespace removed.
        :param text: The input text.
        :return: The sanitized text.
        """
        if not text:
            return ""

        text = cls.normalize_unicode(cls.remove_null_bytes(text))
        text = cls.strip_markup(text)
        text = cls.CONTROL_CHARS.sub("", text)
        text = cls.EXCESSIVE_WHITESPACE.sub(" ", text)
        return text.strip()

    @classmethod
    def sanitize_multiline_text(cls, text: str) -> str:
        """
        Multi-line text such as descriptions. Line breaks are kept, at most one
        blank line in a row.
        :param text: The input text.
        :return: The sanitized multiline text.
        """
        if not text:
            return ""

        text = cls.normalize_unicode(cls.remove_null_bytes(text))
        text = cls.strip_markup(text)
        lines = [cls.CONTROL_CHARS.sub("", line).strip() for line in text.split("\n")]
        text = "\n".join(lines)
        return re.sub(r"\n{3,}", "\n\n", text).strip()


class URLSanitizer(BaseSanitizer):
    """URL sanitizer for logos and avatars"""

    ALLOWED_SCHEMES = {"http", "https"}

    @classmethod
    def sanitize_url(cls, url: str) -> str:
        """
        Normalize a URL and refuse anything that is not http(s).
        :param url: The input URL to sanitize.
        :return: A sanitized URL string.
        """
        if not url:
            return ""

        parsed = urlparse(cls.normalize_unicode(url.strip()))
        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValueError(f"Unsupported protocol: {parsed.scheme or 'none'}")

        return urlunparse(
            (
                parsed.scheme.lower(),
                parsed.netloc.lower(),
                parsed.path,
                parsed.params,
                parsed.query,
                parsed.fragment,
            )
        )


class EmailSanitizer(BaseSanitizer):
    """Email address sanitizer"""

    @classmethod
    def sanitize_email(cls, email: str) -> str:
        """
        Trim and lower-case an e-mail address, dropping characters that can
        never appear in one.
        :param email: The input email address to sanitize.
        :return: A sanitized email address string.
        """
        if not email:
            return ""

        email = cls.normalize_unicode(email.strip()).lower()
        return re.sub(r"[^\w@.+-]", "", email)


class FormSanitizer:
    """Sanitizes submitted form data field by field"""

    @classmethod
    def sanitize_value(cls, key: str, value: Any) -> Any:
        name = key.lower()
        if name in RAW_FIELDS:
            return value
        if isinstance(value, dict):
            return cls.sanitize_form(value)
        if isinstance(value, list):
            return [cls.sanitize_value(key, item) for item in value]
        if not isinstance(value, str):
            return value

        if "email" in name:
            return EmailSanitizer.sanitize_email(value)
        if name.endswith("url"):
            try:
                return URLSanitizer.sanitize_url(value)
            except ValueError:
                return ""  # Invalid URL becomes empty string
        if "description" in name:
            return TextSanitizer.sanitize_multiline_text(value)
        return TextSanitizer.sanitize_basic_text(value)

    @classmethod
    def sanitize_form(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sanitize user input based on field names.
        :param data: Submitted fields.
        :return: A dictionary with sanitized values.
        """
        return {key: cls.sanitize_value(key, value) for key, value in data.items()}


__all__ = [
    "RAW_FIELDS",
    "BaseSanitizer",
    "TextSanitizer",
    "URLSanitizer",
    "EmailSanitizer",
    "FormSanitizer",
]
