import logging

from PyQt6.QtCore import QSettings

ORGANIZATION = "StampEditor"
APPLICATION = "StampEditor"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class Preferences:
    """Application preferences stored through QSettings."""

    def __init__(self, settings: QSettings | None = None):
        self._settings = settings or QSettings(ORGANIZATION, APPLICATION)

    @property
    def last_dir(self) -> str:
        return self._settings.value("last_dir", "", type=str)

    @last_dir.setter
    def last_dir(self, value: str):
        self._settings.setValue("last_dir", value)

    @property
    def brush_dirs(self) -> list[str]:
        value = self._settings.value("brush_dirs", [])
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        return [str(v) for v in value if v]

    @brush_dirs.setter
    def brush_dirs(self, dirs: list[str]):
        self._settings.setValue("brush_dirs", list(dict.fromkeys(dirs)))

    def add_brush_dir(self, path: str):
        self.brush_dirs = self.brush_dirs + [path]

    @property
    def history_dir(self) -> str | None:
        return self._settings.value("history_dir", "", type=str) or None

    @history_dir.setter
    def history_dir(self, value: str | None):
        self._settings.setValue("history_dir", value or "")

    @property
    def log_level(self) -> int:
        name = self._settings.value("log_level", "INFO", type=str).upper()
        if name not in _LOG_LEVELS:
            name = "INFO"
        return getattr(logging, name)

    @log_level.setter
    def log_level(self, name: str):
        self._settings.setValue("log_level", name.upper())

    def sync(self):
        self._settings.sync()
