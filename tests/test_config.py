# tests/test_config.py

from __future__ import annotations

import pytest
from pydantic import ValidationError

from taskboard.config import Settings


def test_postgres_scheme_is_rewritten() -> None:
    settings = Settings(_env_file=None, DATABASE_URL="postgres://u:p@db:5432/tasks")
    assert settings.DATABASE_URL == "postgresql://u:p@db:5432/tasks"


def test_thresholds_are_parsed_largest_first() -> None:
    settings = Settings(_env_file=None, REMINDER_THRESHOLDS=" 1, 48,24,24 ")
    assert settings.reminder_thresholds == [48, 24, 1]


@pytest.mark.parametrize("value", ["", "abc", "24,-1", "0"])
def test_invalid_thresholds_are_rejected(value) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, REMINDER_THRESHOLDS=value)


def test_allowed_origins_include_frontend() -> None:
    settings = Settings(_env_file=None, FRONTEND_URL="https://app.example.com", CORS_ORIGINS=["https://admin.example.com"])
    assert settings.allowed_origins == ["https://app.example.com", "https://admin.example.com"]
