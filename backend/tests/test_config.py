"""Tests for settings loading and path resolution."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from webchat.config import load_config


def test_defaults_when_file_missing(tmp_path):
    cfg = load_config(settings_path=tmp_path / "missing.yaml")

    assert cfg.server.port == 3001
    assert cfg.session.history_limit == 50
    assert cfg.session.max_pending_events == 100
    assert cfg.session.reject_duplicate_message_ids is False
    assert cfg.session.unknown_sender_name == "Unknown"
    assert cfg.logging.level == "info"


def test_values_from_yaml(tmp_path):
    settings_file = tmp_path / "webchat.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 8080\n"
        "  allowed_origins: ['http://localhost:3000']\n"
        "session:\n"
        "  history_limit: 20\n"
        "  reject_duplicate_message_ids: true\n"
        "logging:\n"
        "  level: DEBUG\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file)

    assert cfg.server.port == 8080
    assert cfg.server.allowed_origins == ["http://localhost:3000"]
    assert cfg.session.history_limit == 20
    assert cfg.session.reject_duplicate_message_ids is True
    assert cfg.logging.level == "debug"


def test_relative_database_path_resolves_from_settings_dir(tmp_path):
    settings_file = tmp_path / "webchat.settings.yaml"
    settings_file.write_text("database:\n  path: data/chat.duckdb\n", encoding="utf-8")

    cfg = load_config(settings_path=settings_file)

    assert Path(cfg.database.path) == tmp_path.resolve() / "data" / "chat.duckdb"


def test_absolute_and_memory_database_paths_unchanged(tmp_path):
    absolute = tmp_path / "abs" / "chat.duckdb"
    settings_file = tmp_path / "webchat.settings.yaml"

    settings_file.write_text(f"database:\n  path: {absolute}\n", encoding="utf-8")
    assert Path(load_config(settings_path=settings_file).database.path) == absolute

    settings_file.write_text("database:\n  path: ':memory:'\n", encoding="utf-8")
    assert load_config(settings_path=settings_file).database.path == ":memory:"


def test_invalid_values_rejected(tmp_path):
    settings_file = tmp_path / "webchat.settings.yaml"
    settings_file.write_text("session:\n  history_limit: 0\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_config(settings_path=settings_file)

    settings_file.write_text("logging:\n  level: chatty\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(settings_path=settings_file)
