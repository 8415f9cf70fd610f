"""
Name: UI Preferences

Responsibilities:
  - Persist the theme preference (light, dark, auto) in local storage
"""

from enum import Enum

from ..domain.repositories import THEME_KEY, KeyValueStore


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class Preferences:
    def __init__(self, storage: KeyValueStore):
        self._storage = storage

    @property
    def theme(self) -> Theme:
        try:
            return Theme(self._storage.get(THEME_KEY) or Theme.LIGHT.value)
        except ValueError:
            return Theme.LIGHT

    def set_theme(self, theme: Theme | str) -> Theme:
        value = Theme(theme)
        self._storage.set(THEME_KEY, value.value)
        return value
