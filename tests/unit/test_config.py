"""Tests for configuration loading."""

import pytest

from stepflow.config import load_config
from stepflow.errors import PlanError


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("STEPFLOW_CONFIG", raising=False)
    monkeypatch.delenv("STEPFLOW_MARKER_URL", raising=False)
    monkeypatch.delenv("STEPFLOW_LOG_LEVEL", raising=False)

    config = load_config()

    assert config.plan == "stepflow.yaml"
    assert config.marker_url is None
    assert config.markers.prefix == ".setup_completed_"
    assert config.reset_on_success is True


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
plan: setup/laravel.yaml
reset_on_success: false
command_timeout: 600
markers:
  directory: .state
  prefix: .done_
"""
    )
    monkeypatch.setenv("STEPFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("STEPFLOW_MARKER_URL", raising=False)

    config = load_config()

    assert config.plan == "setup/laravel.yaml"
    assert config.reset_on_success is False
    assert config.command_timeout == 600
    assert config.markers.directory == ".state"
    assert config.markers.prefix == ".done_"


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("marker_url: memory://\nlog_level: INFO\n")
    monkeypatch.setenv("STEPFLOW_MARKER_URL", "sqlite://markers.db")
    monkeypatch.setenv("STEPFLOW_LOG_LEVEL", "DEBUG")

    config = load_config(str(config_path))

    assert config.marker_url == "sqlite://markers.db"
    assert config.log_level == "DEBUG"


def test_invalid_config_raises_plan_error(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("reset_on_success: [not, a, bool]\n")

    with pytest.raises(PlanError):
        load_config(str(config_path))


def test_explicit_missing_config_raises(tmp_path):
    with pytest.raises(PlanError):
        load_config(str(tmp_path / "absent.yaml"))


def test_log_level_is_normalized(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("log_level: warning\n")

    assert load_config(str(config_path)).log_level == "WARNING"


@pytest.mark.parametrize("body", ["log_level: LOUD\n", "log_level: 10\n"])
def test_unknown_log_level_raises_plan_error(tmp_path, body):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(body)

    with pytest.raises(PlanError):
        load_config(str(config_path))


def test_unknown_log_level_from_environment_raises_plan_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("STEPFLOW_CONFIG", raising=False)
    monkeypatch.setenv("STEPFLOW_LOG_LEVEL", "chatty")

    with pytest.raises(PlanError):
        load_config()
