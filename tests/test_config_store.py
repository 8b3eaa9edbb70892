from __future__ import annotations

from pathlib import Path

import pytest

from config import JsonConfigStore


def test_config_read_write(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.f9"
    assert store.get_language() == "en-US"
    assert store.get_max_restart_attempts() is None

    store.set_api_key("abc")
    store.set_hotkey("Key.f8")
    store.set_language("ko-KR")
    store.set_max_restart_attempts(5)

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_hotkey() == "Key.f8"
    assert reloaded.get_language() == "ko-KR"
    assert reloaded.get_max_restart_attempts() == 5

    reloaded.set_max_restart_attempts(None)
    assert reloaded.get_max_restart_attempts() is None


def test_config_invalid_json_fallback(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.f9"
    assert store.get_language() == "en-US"


def test_config_non_object_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_hotkey() == "Key.f9"
    store.set_hotkey("Key.f10")
    assert store.get_hotkey() == "Key.f10"


def test_api_key_falls_back_to_environment(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("DASHSCOPE_API_KEY", "from-env")
    store = JsonConfigStore(path=tmp_path / "config.json")

    assert store.get_api_key() == "from-env"
    store.set_api_key("from-file")
    assert store.get_api_key() == "from-file"


def test_unsupported_language_is_rejected(tmp_path: Path) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    with pytest.raises(ValueError):
        store.set_language("xx-YY")


def test_unsupported_stored_language_reads_as_default(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"language": "tlh"}', encoding="utf-8")

    assert JsonConfigStore(path=path).get_language() == "en-US"


@pytest.mark.parametrize("raw", ['"3"', "-1", "true", "null"])
def test_malformed_restart_limit_reads_as_unbounded(tmp_path: Path, raw: str) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"max_restart_attempts": %s}' % raw, encoding="utf-8")

    assert JsonConfigStore(path=path).get_max_restart_attempts() is None
