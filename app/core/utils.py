import hashlib
import urllib.parse
from datetime import datetime, UTC
from typing import Callable, Iterable, List, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL = "all"  # Filter value meaning "do not filter"


class SearchUtils:
    """Client-side filtering of lists that were already loaded"""

    @staticmethod
    def matches_search(term: Optional[str], *fields: Optional[str]) -> bool:
        """
        Case-insensitive substring match against any of the given fields.
        :param term: Search term, an empty term matches everything.
        :param fields: Text fields to look in, None fields are skipped.
        :return: True if the term occurs in at least one field.
        """
        if not term:
            return True
        needle = term.lower()
        return any(field and needle in field.lower() for field in fields)

    @staticmethod
    def filter_items(
        items: Iterable[T],
        term: Optional[str],
        fields: Callable[[T], Iterable[Optional[str]]],
    ) -> List[T]:
        """
        Keep the items whose text fields contain the search term.
        :param items: Items to filter.
        :param term: Search term.
        :param fields: Returns the searchable fields of an item.
        :return: Matching items, in their original order.
        """
        return [item for item in items if SearchUtils.matches_search(term, *fields(item))]

    @staticmethod
    def matches_choice(value: Optional[str], choice: Optional[str]) -> bool:
        """
        Exact match for select-style filters where "all" disables the filter.
        """
        if not choice or choice == ALL:
            return True
        return value == choice


class DisplayUtils:
    """Labels shown next to organizations, projects, members and tickets."""

    @staticmethod
    def member_count_label(count: int) -> str:
        return f"{count} member" if count == 1 else f"{count} members"

    @staticmethod
    def date_label(value: Optional[datetime]) -> str:
        """Short month/day/year date, empty when unknown"""
        if value is None:
            return ""
        return f"{value.month}/{value.day}/{value.year}"

    @staticmethod
    def initial(name: Optional[str], email: Optional[str] = None) -> str:
        """
        Single upper-case letter for avatars.
        :return: First letter of the name, else of the e-mail, else "?".
        """
        for text in (name, email):
            if text and text.strip():
                return text.strip()[0].upper()
        return "?"

    @staticmethod
    def distance_to_now(value: datetime, now: Optional[datetime] = None) -> str:
        """
        Human readable distance between a timestamp and now, with a suffix:
        "less than a minute ago", "5 minutes ago", "about 2 hours ago",
        "3 days ago", "about 1 month ago", "over 1 year ago", "in 2 days".
        :param value: Timestamp, naive values are taken as UTC.
        :param now: Reference time, defaults to the current time.
        :return: Relative time label.
        """
        if now is None:
            now = datetime.now(UTC)
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)

        value, now = value.astimezone(UTC), now.astimezone(UTC)
        future = value > now
        earlier, later = (now, value) if future else (value, now)
        distance = DisplayUtils._distance_words(earlier, later)
        return f"in {distance}" if future else f"{distance} ago"

    @staticmethod
    def _calendar_months(earlier: datetime, later: datetime) -> int:
        """Whole calendar months between two timestamps"""
        months = (later.year - earlier.year) * 12 + later.month - earlier.month
        if (later.day, later.time()) < (earlier.day, earlier.time()):
            months -= 1
        return months

    @staticmethod
    def _distance_words(earlier: datetime, later: datetime) -> str:
        minutes = round((later - earlier).total_seconds() / 60)
        minutes_in_day = 1440
        minutes_in_month = 43200

        if minutes < 1:
            return "less than a minute"
        if minutes < 45:
            return "1 minute" if minutes == 1 else f"{minutes} minutes"
        if minutes < 90:
            return "about 1 hour"
        if minutes < minutes_in_day:
            return f"about {round(minutes / 60)} hours"
        if minutes < 2520:
            return "1 day"
        if minutes < minutes_in_month:
            return f"{round(minutes / minutes_in_day)} days"
        if minutes < 2 * minutes_in_month:
            months = round(minutes / minutes_in_month)
            return "about 1 month" if months == 1 else f"about {months} months"

        # From two months on, count whole calendar months
        months = DisplayUtils._calendar_months(earlier, later)
        if months < 12:
            return f"{round(minutes / minutes_in_month)} months"

        years = months // 12
        remainder = months % 12
        if remainder < 3:
            return "about 1 year" if years == 1 else f"about {years} years"
        if remainder < 9:
            return "over 1 year" if years == 1 else f"over {years} years"
        return f"almost {years + 1} years"


class AvatarUtils:
    """Utilities for generating user avatars."""

    GRAVATAR_BASE_URL = "https://www.gravatar.com/avatar/"

    @staticmethod
    def get_gravatar_url(email: str, size: int = 80) -> str:
        """
        Generate a Gravatar URL for the given email address.
        :param email: User's email address.
        :param size: Size of the avatar in pixels (1-2048).
        :return: Full Gravatar URL, falling back to a generated identicon.
        """
        email_hash = hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()
        query_string = urllib.parse.urlencode(
            {"s": str(max(1, min(size, 2048))), "d": "identicon"}
        )
        return f"{AvatarUtils.GRAVATAR_BASE_URL}{email_hash}?{query_string}"

    @staticmethod
    def resolve_avatar_url(
        avatar_url: Optional[str], email: Optional[str]
    ) -> Optional[str]:
        if avatar_url:
            return avatar_url
        if email:
            return AvatarUtils.get_gravatar_url(email)
        return None


__all__ = [
    "ALL",
    "SearchUtils",
    "DisplayUtils",
    "AvatarUtils",
]
