"""
Research themes with importance ratings.
"""
from typing import List, Optional
import json
import logging
import re

from litdraft.db.kv_store import KeyValueStore
from litdraft.errors import InvalidArgument
from litdraft.models import Theme

logger = logging.getLogger(__name__)

THEMES_KEY = "themes"
DEFAULT_IMPORTANCE = 5

# "- theme", "* theme", "• theme", "1. theme", "2) theme"
LIST_MARKER_PATTERN = re.compile(r'^\s*(?:[-*•]+|\d+[.)])\s*')


def themes_from_text(text: str, default_importance: int = DEFAULT_IMPORTANCE) -> List[Theme]:
    """One Theme per non-blank line of free text, list markers stripped."""
    themes = []
    for line in (text or "").splitlines():
        cleaned = LIST_MARKER_PATTERN.sub('', line).strip()
        if cleaned:
            themes.append(Theme(text=cleaned, importance=default_importance))
    return themes


class ThemeList:
    """Ordered, persisted list of Themes for the current session."""

    def __init__(self, store: KeyValueStore, key: str = THEMES_KEY):
        self.store = store
        self.key = key
        self._themes: Optional[List[Theme]] = None

    @property
    def themes(self) -> List[Theme]:
        if self._themes is None:
            self._themes = self._load()
        return self._themes

    def _load(self) -> List[Theme]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.error(f"Could not parse themes under '{self.key}': {e}")
            return []
        if not isinstance(items, list):
            logger.error(f"Themes under '{self.key}' are not a list")
            return []

        themes = []
        for item in items:
            try:
                themes.append(Theme.from_dict(item))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.error(f"Skipping unreadable theme {item!r}: {e}")
        return themes

    def _save(self) -> None:
        self.store.set(self.key, json.dumps([t.to_dict() for t in self.themes]))

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.themes):
            raise InvalidArgument(f"No theme at position {index}")

    def add(self, text: str, importance: int = DEFAULT_IMPORTANCE) -> Theme:
        theme = Theme(text=text.strip(), importance=importance)
        if not theme.text:
            raise InvalidArgument("Theme text must not be empty")
        self.themes.append(theme)
        self._save()
        return theme

    def rate(self, index: int, importance: int) -> Theme:
        self._check_index(index)
        # Build a new Theme so the range check runs
        self.themes[index] = Theme(text=self.themes[index].text, importance=importance)
        self._save()
        return self.themes[index]

    def remove(self, index: int) -> Theme:
        self._check_index(index)
        theme = self.themes.pop(index)
        self._save()
        return theme

    def replace(self, themes: List[Theme]) -> None:
        self._themes = list(themes)
        self._save()
        logger.info(f"Theme list replaced ({len(self.themes)} themes)")
