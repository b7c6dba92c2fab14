from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

from .logger import get_logger

if TYPE_CHECKING:
    from .image_engine.codecs.registry import ResolutionPolicy

_logger = get_logger("settings")


class SettingsManager:
    """JSON-backed loader settings.

    A manager created without a path never touches the disk and only serves
    `DEFAULTS`.
    """

    def __init__(self, settings_path: str | None = None):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "max_texture_size": 8192,
        "max_texture_mip_count": 15,
        # None lets each codec decide whether non-power-of-two sizes are fine.
        "allow_non_power_of_two": None,
        "max_file_size_bytes": 999_999_999,
        "gif_pool_workers": 4,
        "reader_thread_name": "RuntimeImageReader",
    }

    def load(self) -> None:
        if not self.settings_path:
            self._settings = {}
            return
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except Exception as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        if not self.settings_path:
            return
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except Exception as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def max_texture_size(self) -> int:
        return int(self.get("max_texture_size"))

    @property
    def max_texture_mip_count(self) -> int:
        return int(self.get("max_texture_mip_count"))

    @property
    def allow_non_power_of_two(self) -> bool | None:
        val = self.get("allow_non_power_of_two")
        return None if val is None else bool(val)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.get("max_file_size_bytes"))

    @property
    def gif_pool_workers(self) -> int:
        return max(1, int(self.get("gif_pool_workers")))

    @property
    def reader_thread_name(self) -> str:
        return str(self.get("reader_thread_name"))

    def resolution_policy(self) -> ResolutionPolicy:
        from .image_engine.codecs.registry import ResolutionPolicy

        return ResolutionPolicy(
            max_texture_size=self.max_texture_size,
            max_texture_mip_count=self.max_texture_mip_count,
            allow_non_power_of_two=self.allow_non_power_of_two,
        )
