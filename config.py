"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from patterns import DEFAULT_LANGUAGE_TAG, SUPPORTED_LANGUAGES

DEFAULT_HOTKEY = "Key.f9"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "nebula_voice" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_language(self) -> str:
        value = str(self._read_all().get("language", DEFAULT_LANGUAGE_TAG))
        if value not in SUPPORTED_LANGUAGES:
            return DEFAULT_LANGUAGE_TAG
        return value

    def set_language(self, language_tag: str) -> None:
        if language_tag not in SUPPORTED_LANGUAGES:
            raise ValueError(f"unsupported language tag: {language_tag!r}")
        data = self._read_all()
        data["language"] = language_tag
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", DEFAULT_HOTKEY))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_max_restart_attempts(self) -> Optional[int]:
        value = self._read_all().get("max_restart_attempts")
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return None
        return value

    def set_max_restart_attempts(self, attempts: Optional[int]) -> None:
        data = self._read_all()
        if attempts is None:
            data.pop("max_restart_attempts", None)
        else:
            data["max_restart_attempts"] = int(attempts)
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
