"""Caller-side validation and normalization of event drafts."""
import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from planner.errors import ValidationError
from planner.models import EventDraft

logger = logging.getLogger(__name__)


class EventDraftValidator:
    """Validates drafts before they are handed to EventStore.create."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000
    REQUIRED_FIELDS = ('title', 'date', 'time', 'location')

    DATE_FORMATS = [
        '%Y-%m-%d',      # ISO 8601
        '%m/%d/%Y',      # US format
        '%m-%d-%Y',      # US format with dashes
        '%B %d, %Y',     # Full month name
        '%b %d, %Y',     # Abbreviated month name
        '%Y/%m/%d',      # Alternative ISO format
    ]

    TIME_FORMATS = [
        '%H:%M',         # 24-hour format
        '%I:%M %p',      # 12-hour format with AM/PM
        '%I:%M%p',       # 12-hour format without space
        '%H:%M:%S',      # 24-hour with seconds
        '%I:%M:%S %p',   # 12-hour with seconds and AM/PM
    ]

    def validate(self, draft: EventDraft) -> EventDraft:
        """
        Validate a draft and return a normalized copy.

        Args:
            draft: Draft as entered by the user

        Returns:
            Copy with ISO date, 24-hour time and truncated text fields

        Raises:
            ValidationError: If required fields are missing or unparseable
        """
        missing = self._missing_fields(draft)
        if missing:
            logger.warning(f"Event draft missing required fields: {', '.join(missing)}")
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        normalized_date = self.normalize_date(draft.date)
        if not normalized_date:
            raise ValidationError(f"Invalid date format: {draft.date}")

        normalized_time = self.normalize_time_range(draft.time)
        if not normalized_time:
            raise ValidationError(f"Invalid time format: {draft.time}")

        return replace(
            draft,
            title=draft.title.strip()[:self.MAX_TITLE_LENGTH],
            date=normalized_date,
            time=normalized_time,
            location=draft.location.strip(),
            description=(draft.description or '')[:self.MAX_DESCRIPTION_LENGTH]
        )

    def _missing_fields(self, draft: EventDraft) -> List[str]:
        missing = []
        for name in self.REQUIRED_FIELDS:
            value = getattr(draft, name)
            if not value or not value.strip():
                missing.append(name)
        return missing

    def normalize_date(self, date_str: str) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        for fmt in self.DATE_FORMATS:
            try:
                date_obj = datetime.strptime(date_str.strip(), fmt)
                return date_obj.strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def normalize_time(self, time_str: str) -> Optional[str]:
        """Normalize a single time to 24-hour HH:MM, None if unparseable."""
        time_str = time_str.strip()

        for fmt in self.TIME_FORMATS:
            try:
                time_obj = datetime.strptime(time_str, fmt)
                return time_obj.strftime('%H:%M')
            except ValueError:
                continue

        return None

    def normalize_time_range(self, time_str: str) -> Optional[str]:
        """
        Normalize a time or a "start-end" range.

        Args:
            time_str: e.g. "19:00", "7:00 PM - 9:00 PM"

        Returns:
            "HH:MM" or "HH:MM-HH:MM", None if either part is unparseable
        """
        parts = [part for part in time_str.split('-') if part.strip()]
        if not parts or len(parts) > 2:
            return None

        normalized = [self.normalize_time(part) for part in parts]
        if any(part is None for part in normalized):
            return None
        return '-'.join(normalized)
