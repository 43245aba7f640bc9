"""
Test settings loading from the environment.

Run with: pytest driver_reports/config/test_settings.py -v
"""
import pytest

from driver_reports.config import load_settings
from driver_reports.core.exceptions import ReportConfigError
from driver_reports.core.models import TargetBand


def test_defaults():
    settings = load_settings({})
    assert settings.report.org_name == "Fiskelogistik"
    assert settings.report.default_min_km == 100.0
    assert settings.render.timeout_seconds == 45.0
    assert settings.mail.transport == "smtp"
    assert settings.targets.band_for("idle_percentage") == TargetBand(maximum=5.0)
    assert settings.targets.band_for("cruise_control_share") == TargetBand(minimum=66.5)
    assert settings.targets.band_for("diesel_efficiency") is None


def test_environment_overrides():
    settings = load_settings({
        "DRIVER_REPORTS_ORG_NAME": "Nordfragt",
        "DRIVER_REPORTS_MIN_KM": "250",
        "DRIVER_REPORTS_TARGET_ENGINE_BRAKE_MIN": "50,0",
        "DRIVER_REPORTS_RENDER_ISOLATED": "false",
        "MAIL_TRANSPORT": "HTTP",
        "SMTP_PORT": "465",
        "LOG_LEVEL": "debug",
    })
    assert settings.report.org_name == "Nordfragt"
    assert settings.report.default_min_km == 250.0
    assert settings.targets.engine_brake_min == 50.0
    assert settings.render.isolate_process is False
    assert settings.mail.transport == "http"
    assert settings.mail.smtp_port == 465
    assert settings.log_level == "DEBUG"


def test_invalid_values_are_all_reported():
    with pytest.raises(ReportConfigError) as excinfo:
        load_settings({"SMTP_PORT": "abc", "DRIVER_REPORTS_MIN_KM": "-1", "MAIL_TRANSPORT": "pigeon"})
    assert len(excinfo.value.errors) == 3


def test_settings_are_immutable():
    settings = load_settings({})
    with pytest.raises(AttributeError):
        settings.log_level = "DEBUG"
