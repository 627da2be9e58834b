"""Natural-language task input parser.

Turns one line of free text into a :class:`ParsedTask`: at most one due date
and any number of ``#tags``; whatever remains becomes the title.

Example::

    >>> parser = NaturalLanguageParser()
    >>> parsed = parser.parse("明日 買い物に行く #仕事")
    >>> parsed.title, parsed.tags
    ('買い物に行く', ['仕事'])
"""

import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..models.task import ParsedTask
from ..utils import dates

logger = logging.getLogger(__name__)

# Checked in this order; only the first phrase present is honored.
DATE_PHRASES: Tuple[Tuple[str, Callable[[Optional[datetime]], datetime]], ...] = (
    ("明日", dates.tomorrow),
    ("今週末", dates.this_weekend),
    ("来週", dates.next_week),
)

ISO_DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})", re.ASCII)
TAG_PATTERN = re.compile(r"#(\S+)")


class NaturalLanguageParser:
    """Stateless parser for quick-add task input.

    Holds no scan position between calls, so a single instance can be shared
    freely.
    """

    def parse(self, text: str, now: Optional[datetime] = None) -> ParsedTask:
        """Parse free-form input into title, due date and tags.

        Args:
            text: Raw user input
            now: Reference time for relative phrases (defaults to the current
                local time)

        Returns:
            Parsed task; never raises for any string input
        """
        due_date, remaining = self.extract_due_date(text or "", now)
        tags, remaining = self.extract_tags(remaining)

        parsed = ParsedTask(title=remaining.strip(), due_date=due_date, tags=tags)
        logger.debug(f"Parsed {text!r} -> title={parsed.title!r} due={parsed.due_date} tags={parsed.tags}")
        return parsed

    def extract_due_date(
        self,
        text: str,
        now: Optional[datetime] = None
    ) -> Tuple[Optional[datetime], str]:
        """Extract the first due date expression.

        Relative phrases win over absolute ``YYYY-MM-DD`` tokens. A phrase match
        removes every occurrence of that phrase; an absolute match removes only
        the first valid token.

        Args:
            text: Input text
            now: Reference time for relative phrases

        Returns:
            Tuple of (due date or None, remaining text)
        """
        for phrase, resolve in DATE_PHRASES:
            if phrase in text:
                return resolve(now), text.replace(phrase, "")

        for match in ISO_DATE_PATTERN.finditer(text):
            year, month, day = (int(part) for part in match.groups())
            try:
                due = datetime(year, month, day, tzinfo=now.tzinfo if now else None)
            except ValueError:
                # Not a calendar date, e.g. 2026-02-30
                continue
            return due, text[:match.start()] + text[match.end():]

        return None, text

    def extract_tags(self, text: str) -> Tuple[List[str], str]:
        """Extract all ``#tag`` tokens in left-to-right order.

        Args:
            text: Input text

        Returns:
            Tuple of (tags without the leading ``#``, remaining text)
        """
        tags = TAG_PATTERN.findall(text)
        return tags, TAG_PATTERN.sub("", text)


_default_parser = NaturalLanguageParser()


def parse_task_text(text: str, now: Optional[datetime] = None) -> ParsedTask:
    """Parse free text with a shared parser instance."""
    return _default_parser.parse(text, now)
