"""Shared test fixtures for Claude Usage Monitor."""

import os
import sys
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def qapp():
    """Create a QCoreApplication for tests that need Qt."""
    os.environ["QT_QPA_PLATFORM"] = "offscreen"
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication(sys.argv or ["test"])
    yield app


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def usage_session_path(fixtures_dir) -> Path:
    return fixtures_dir / "usage_session.jsonl"


@pytest.fixture
def compaction_session_path(fixtures_dir) -> Path:
    return fixtures_dir / "session_with_compaction.jsonl"


@pytest.fixture
def malformed_session_path(fixtures_dir) -> Path:
    return fixtures_dir / "malformed_session.jsonl"


@pytest.fixture
def probe_output_path(fixtures_dir) -> Path:
    return fixtures_dir / "usage_probe_output.txt"


@pytest.fixture
def tmp_projects_root(tmp_path) -> Path:
    """Create a temporary Claude projects directory structure."""
    projects_dir = tmp_path / ".claude" / "projects"
    project_dir = projects_dir / "-home-wiz-projects-myapp"
    project_dir.mkdir(parents=True)
    return projects_dir


@pytest.fixture
def config(qapp, tmp_path):
    """Create a ConfigManager with isolated QSettings."""
    from PySide6.QtCore import QSettings
    from claude_usage_monitor.services.config_manager import ConfigManager

    settings = QSettings(str(tmp_path / "config" / "settings.ini"), QSettings.IniFormat)
    return ConfigManager(settings)
