"""
Tests for LayoutConfig and its environment overrides.
"""

import os
from dataclasses import FrozenInstanceError

import pytest

from pdflayout.config import LayoutConfig

ENV_VARS = (
    "PDFLAYOUT_MAX_FILE_SIZE_MB",
    "PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS",
    "PDFLAYOUT_LOAD_TIMEOUT",
    "PDFLAYOUT_CONTINUATION_THRESHOLD",
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Unset PDFLAYOUT_* before the test; also drops values a dotenv file loaded."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    for name in ENV_VARS:
        os.environ.pop(name, None)


# =============================================================================
# DEFAULTS
# =============================================================================

def test_defaults():
    config = LayoutConfig()
    assert config.limits.max_file_size == 500 * 1024 * 1024
    assert config.limits.max_pages_for_analysis == 2
    assert config.limits.load_timeout == 300.0
    assert config.continuation.threshold == 3.0


def test_sections_are_frozen():
    config = LayoutConfig()
    with pytest.raises(FrozenInstanceError):
        config.continuation.threshold = 1.0


def test_with_continuation_threshold_returns_copy():
    config = LayoutConfig()
    strict = config.with_continuation_threshold(4.5)
    assert strict.continuation.threshold == 4.5
    assert config.continuation.threshold == 3.0
    assert strict.headings == config.headings


# =============================================================================
# ENVIRONMENT
# =============================================================================

def test_from_env_without_variables(clean_env, tmp_path):
    empty = tmp_path / "empty.env"
    empty.write_text("")
    assert LayoutConfig.from_env(empty) == LayoutConfig()


def test_from_env_reads_overrides(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv("PDFLAYOUT_MAX_FILE_SIZE_MB", "10")
    monkeypatch.setenv("PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS", "3")
    monkeypatch.setenv("PDFLAYOUT_LOAD_TIMEOUT", "12.5")
    monkeypatch.setenv("PDFLAYOUT_CONTINUATION_THRESHOLD", "4")
    config = LayoutConfig.from_env(tmp_path / "missing.env")
    assert config.limits.max_file_size == 10 * 1024 * 1024
    assert config.limits.max_pages_for_analysis == 3
    assert config.limits.load_timeout == 12.5
    assert config.continuation.threshold == 4.0


def test_from_env_loads_dotenv_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS=5\n")
    assert LayoutConfig.from_env(env_file).limits.max_pages_for_analysis == 5


def test_process_environment_wins_over_file(clean_env, monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS=5\n")
    monkeypatch.setenv("PDFLAYOUT_MAX_PAGES_FOR_ANALYSIS", "7")
    assert LayoutConfig.from_env(env_file).limits.max_pages_for_analysis == 7


def test_from_env_rejects_non_numeric(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv("PDFLAYOUT_LOAD_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        LayoutConfig.from_env(tmp_path / "missing.env")
