"""Tests for studysmart/settings.py and studysmart/workspace.py."""

from datetime import datetime, timezone

from studysmart.settings import Settings, load_settings, save_settings
from studysmart import workspace
from studysmart.workspace import database_path, settings_path


def test_data_root_from_env(data_root):
    assert data_root == data_root.resolve()
    assert workspace.data_root() == data_root
    assert database_path() == data_root / "study-smart.db"


def test_load_settings_reads_yaml(data_root):
    settings = load_settings()
    assert settings.root == data_root
    assert settings.timezone == "UTC"
    assert settings.storage == "sqlite"
    assert settings.grace_seconds == 0.05
    assert settings.plan_config().max_daily_hours == 4


def test_load_settings_missing_file_uses_defaults(tmp_path):
    settings = load_settings(tmp_path)
    assert settings == Settings(root=tmp_path)


def test_load_settings_bad_yaml_uses_defaults(tmp_path):
    settings_path(tmp_path).write_text("timezone: [unclosed", encoding="utf-8")
    assert load_settings(tmp_path).storage == "sqlite"


def test_settings_validate_values(tmp_path):
    settings = Settings.from_dict(
        {"storage": "Mongo", "start_time": "7pm", "max_daily_hours": "abc", "grace_seconds": "soon"}, root=tmp_path,
    )
    assert settings.storage == "sqlite"
    assert settings.start_time == "09:00"
    assert settings.max_daily_hours == 4.0
    assert settings.grace_seconds == 5.0


def test_unquoted_start_time_in_yaml(tmp_path):
    settings_path(tmp_path).write_text("start_time: 12:30\n", encoding="utf-8")
    assert load_settings(tmp_path).start_time == "12:30"


def test_save_and_reload(tmp_path):
    settings = Settings(timezone="Europe/Berlin", storage="json", start_time="07:30", root=tmp_path)
    save_settings(settings)
    assert load_settings(tmp_path) == settings


def test_unknown_timezone_falls_back_to_utc():
    settings = Settings(timezone="Mars/Olympus_Mons")
    assert str(settings.tzinfo()) == "UTC"
    now = settings.now()
    assert now.tzinfo is None
    assert abs((datetime.now(timezone.utc).replace(tzinfo=None) - now).total_seconds()) < 60
    assert settings.today() == now.date()


def test_default_root_without_env(monkeypatch, tmp_path):
    monkeypatch.delenv("STUDYSMART_ROOT", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert workspace.data_root() == (tmp_path / "studysmart").resolve()
