"""
Application settings and configuration management.

Configuration is loaded once, from defaults overridden by environment
variables, into an immutable Settings value that is passed down to every
service. Nothing else in the package reads the environment.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional
import os

from ..core.exceptions import ReportConfigError
from ..core.kpis import COASTING, CRUISE, ENGINE_BRAKE, IDLE, OVERSPEED
from ..core.models import TargetBand


@dataclass(frozen=True)
class PathSettings:
    """File and directory path configurations."""

    base_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    data_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent / "data")
    output_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent / "result")

    def ensure_output_dir(self) -> Path:
        """Create the output directory if needed and return it."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir


@dataclass(frozen=True)
class FileSettings:
    """Input/output file configurations."""

    input_file: str = "driver_data.csv"
    groups_file: str = "groups.json"
    kpi_overview_file: str = "kpi_oversigt.xlsx"
    encoding_input: str = "latin1"


@dataclass(frozen=True)
class ColumnMappings:
    """
    Column name candidates for robust CSV parsing.

    Each record field accepts the database column name and the header used
    by the telematics portal's Excel export.
    """

    driver_name: List[str] = field(default_factory=lambda: ["driver_name", "Chauffør", "Chauffor"])
    vehicles: List[str] = field(default_factory=lambda: ["vehicles", "Køretøjer"])
    month: List[str] = field(default_factory=lambda: ["month", "Måned"])
    year: List[str] = field(default_factory=lambda: ["year", "År"])
    group: List[str] = field(default_factory=lambda: ["group", "Gruppe"])

    driving_distance: List[str] = field(default_factory=lambda: [
        "driving_distance", "Kørestrækning [km]"
    ])
    cruise_distance_over_50: List[str] = field(default_factory=lambda: [
        "cruise_distance_over_50", "Afstand med kørehastighedsregulering (> 50 km/h) [km]"
    ])
    distance_over_50_without_cruise: List[str] = field(default_factory=lambda: [
        "distance_over_50_without_cruise", "Afstand > 50 km/h uden kørehastighedsregulering [km]"
    ])
    engine_brake_distance: List[str] = field(default_factory=lambda: [
        "engine_brake_distance", "Afstand motorbremse [km]"
    ])
    service_brake_km: List[str] = field(default_factory=lambda: [
        "service_brake_km", "Driftsbremse (km) [km]"
    ])
    active_coasting_km: List[str] = field(default_factory=lambda: [
        "active_coasting_km", "Aktiv påløbsdrift (km) [km]"
    ])
    coasting_distance: List[str] = field(default_factory=lambda: [
        "coasting_distance", "Afstand i påløbsdrift [km]"
    ])
    overspeed_km_without_coasting: List[str] = field(default_factory=lambda: [
        "overspeed_km_without_coasting", "Overspeed (km uden påløbsdrift) [km]"
    ])
    kickdown_km: List[str] = field(default_factory=lambda: ["kickdown_km", "Kickdown (km) [km]"])

    engine_runtime: List[str] = field(default_factory=lambda: [
        "engine_runtime", "Motordriftstid [hh:mm:ss]"
    ])
    driving_time: List[str] = field(default_factory=lambda: ["driving_time", "Køretid [hh:mm:ss]"])
    idle_standstill_time: List[str] = field(default_factory=lambda: [
        "idle_standstill_time", "Tomgang / stilstandstid [hh:mm:ss]"
    ])

    total_consumption: List[str] = field(default_factory=lambda: ["total_consumption", "Forbrug [l]"])
    avg_consumption_per_100km: List[str] = field(default_factory=lambda: [
        "avg_consumption_per_100km", "Ø Forbrug [l/100km]"
    ])
    avg_range_per_consumption: List[str] = field(default_factory=lambda: [
        "avg_range_per_consumption", "Ø Rækkevidde ved forbrug [km/l]"
    ])
    avg_consumption_driving: List[str] = field(default_factory=lambda: [
        "avg_consumption_driving", "Ø Forbrug ved kørsel [l/100km]"
    ])
    consumption_with_cruise: List[str] = field(default_factory=lambda: [
        "consumption_with_cruise", "Forbrug med kørehastighedsregulering [l/100km]"
    ])
    consumption_without_cruise: List[str] = field(default_factory=lambda: [
        "consumption_without_cruise", "Forbrug uden kørehastighedsregulering [l/100km]"
    ])
    avg_total_weight: List[str] = field(default_factory=lambda: ["avg_total_weight", "Ø totalvægt [t]"])
    co2_emission: List[str] = field(default_factory=lambda: [
        "co2_emission", "CO₂-emission [kg]", "CO2-emission [kg]"
    ])

    def as_dict(self) -> Dict[str, List[str]]:
        """All mappings keyed by record field name."""
        return dict(self.__dict__)


@dataclass(frozen=True)
class KpiTargets:
    """Company target values per KPI, inclusive bounds."""

    idle_max: float = 5.0
    cruise_min: float = 66.5
    engine_brake_min: float = 56.0
    coasting_min: float = 7.0
    overspeed_max: float = 1.0

    def band_for(self, kpi: str) -> Optional[TargetBand]:
        """
        Target band for a KPI.

        Args:
            kpi: KPI catalogue key

        Returns:
            The TargetBand, or None when the KPI has no company target
        """
        bands = {
            IDLE: TargetBand(maximum=self.idle_max),
            CRUISE: TargetBand(minimum=self.cruise_min),
            ENGINE_BRAKE: TargetBand(minimum=self.engine_brake_min),
            COASTING: TargetBand(minimum=self.coasting_min),
            OVERSPEED: TargetBand(maximum=self.overspeed_max),
        }
        return bands.get(kpi)


@dataclass(frozen=True)
class ReportSettings:
    """Report content defaults."""

    org_name: str = "Fiskelogistik"
    default_min_km: float = 100.0
    previous_lookback_months: int = 24
    earliest_year: int = 2020
    top_marked: int = 3


@dataclass(frozen=True)
class RenderSettings:
    """Document renderer limits."""

    timeout_seconds: float = 45.0
    isolate_process: bool = True


@dataclass(frozen=True)
class MailSettings:
    """Outbound mail configuration; the transport is chosen here."""

    transport: str = "smtp"
    smtp_server: str = "smtp.simply.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mailjet_api_key: str = ""
    mailjet_secret_key: str = ""
    mailjet_url: str = "https://api.mailjet.com/v3.1/send"
    sender_email: str = "noreply@fiskelogistikgruppen.dk"
    sender_name: str = "Fiskelogistikgruppen A/S"
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_delay_seconds: float = 2.0


@dataclass(frozen=True)
class Settings:
    """Main application settings container."""

    paths: PathSettings = field(default_factory=PathSettings)
    files: FileSettings = field(default_factory=FileSettings)
    columns: ColumnMappings = field(default_factory=ColumnMappings)
    targets: KpiTargets = field(default_factory=KpiTargets)
    report: ReportSettings = field(default_factory=ReportSettings)
    render: RenderSettings = field(default_factory=RenderSettings)
    mail: MailSettings = field(default_factory=MailSettings)
    log_level: str = "INFO"

    @property
    def input_path(self) -> Path:
        """Full path to the default input file."""
        return self.paths.data_dir / self.files.input_file

    @property
    def groups_path(self) -> Path:
        """Full path to the group membership file."""
        return self.paths.data_dir / self.files.groups_file

    @property
    def kpi_overview_path(self) -> Path:
        """Full path to the KPI overview workbook."""
        return self.paths.output_dir / self.files.kpi_overview_file


def _read_float(environ: Mapping[str, str], name: str, default: float, errors: List[str]) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        errors.append(f"{name} must be a number, got {raw!r}")
        return default


def _read_int(environ: Mapping[str, str], name: str, default: int, errors: List[str]) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        errors.append(f"{name} must be an integer, got {raw!r}")
        return default


def _read_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from defaults and environment overrides.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        Immutable Settings

    Raises:
        ReportConfigError: If any override cannot be parsed
    """
    env = os.environ if environ is None else environ
    errors: List[str] = []
    defaults = Settings()

    paths = defaults.paths
    if env.get("DRIVER_REPORTS_DATA_DIR"):
        paths = replace(paths, data_dir=Path(env["DRIVER_REPORTS_DATA_DIR"]))
    if env.get("DRIVER_REPORTS_OUTPUT_DIR"):
        paths = replace(paths, output_dir=Path(env["DRIVER_REPORTS_OUTPUT_DIR"]))

    targets = KpiTargets(
        idle_max=_read_float(env, "DRIVER_REPORTS_TARGET_IDLE_MAX", defaults.targets.idle_max, errors),
        cruise_min=_read_float(env, "DRIVER_REPORTS_TARGET_CRUISE_MIN", defaults.targets.cruise_min, errors),
        engine_brake_min=_read_float(
            env, "DRIVER_REPORTS_TARGET_ENGINE_BRAKE_MIN", defaults.targets.engine_brake_min, errors
        ),
        coasting_min=_read_float(
            env, "DRIVER_REPORTS_TARGET_COASTING_MIN", defaults.targets.coasting_min, errors
        ),
        overspeed_max=_read_float(
            env, "DRIVER_REPORTS_TARGET_OVERSPEED_MAX", defaults.targets.overspeed_max, errors
        ),
    )

    report = ReportSettings(
        org_name=env.get("DRIVER_REPORTS_ORG_NAME", defaults.report.org_name),
        default_min_km=_read_float(env, "DRIVER_REPORTS_MIN_KM", defaults.report.default_min_km, errors),
        previous_lookback_months=_read_int(
            env, "DRIVER_REPORTS_LOOKBACK_MONTHS", defaults.report.previous_lookback_months, errors
        ),
        earliest_year=_read_int(env, "DRIVER_REPORTS_EARLIEST_YEAR", defaults.report.earliest_year, errors),
    )

    render = RenderSettings(
        timeout_seconds=_read_float(
            env, "DRIVER_REPORTS_RENDER_TIMEOUT", defaults.render.timeout_seconds, errors
        ),
        isolate_process=_read_bool(env, "DRIVER_REPORTS_RENDER_ISOLATED", defaults.render.isolate_process),
    )

    mail = MailSettings(
        transport=env.get("MAIL_TRANSPORT", defaults.mail.transport).strip().lower(),
        smtp_server=env.get("SMTP_SERVER", defaults.mail.smtp_server),
        smtp_port=_read_int(env, "SMTP_PORT", defaults.mail.smtp_port, errors),
        smtp_user=env.get("SMTP_USER", ""),
        smtp_password=env.get("SMTP_PASSWORD", ""),
        mailjet_api_key=env.get("MJ_APIKEY_PUBLIC", ""),
        mailjet_secret_key=env.get("MJ_APIKEY_PRIVATE", ""),
        sender_email=env.get("MJ_SENDER_EMAIL", defaults.mail.sender_email),
        sender_name=env.get("MJ_SENDER_NAME", defaults.mail.sender_name),
        timeout_seconds=_read_float(env, "MAIL_TIMEOUT", defaults.mail.timeout_seconds, errors),
        max_retries=_read_int(env, "MAIL_MAX_RETRIES", defaults.mail.max_retries, errors),
        retry_delay_seconds=_read_float(
            env, "MAIL_RETRY_DELAY", defaults.mail.retry_delay_seconds, errors
        ),
    )
    if mail.transport not in ("smtp", "http"):
        errors.append(f"MAIL_TRANSPORT must be 'smtp' or 'http', got {mail.transport!r}")
    if report.default_min_km <= 0:
        errors.append("DRIVER_REPORTS_MIN_KM must be greater than 0")
    if render.timeout_seconds <= 0:
        errors.append("DRIVER_REPORTS_RENDER_TIMEOUT must be greater than 0")

    if errors:
        raise ReportConfigError(errors)

    return Settings(
        paths=paths,
        files=defaults.files,
        columns=defaults.columns,
        targets=targets,
        report=report,
        render=render,
        mail=mail,
        log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
    )


# Loaded once per process by the entry point
_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or load the process-wide settings value."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = load_settings()
    return _settings_instance
