"""Configuration models for gradebook sync."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from gradebook_sync.columns import index_to_letter, letter_to_index
from gradebook_sync.errors import ConfigurationMissing

API_TOKEN_ENV_VAR: str = "GRADEBOOK_SYNC_API_TOKEN"

# Default operational settings
DEFAULT_REQUEST_TIMEOUT_SECONDS: int = 30
DEFAULT_SUBMISSION_PAUSE_SECONDS: float = 0.1  # Courtesy pause between grade posts
DEFAULT_MAX_PAGES: int = 1000  # Guard against a server that never stops paginating
DEFAULT_SUMMARY_DISPLAY_LIMIT: int = 15
DEFAULT_LOG_PATH: str = "gradebook_sync.log"

REPORT_SUFFIXES: tuple[str, ...] = (".yaml", ".yml", ".csv")


def normalize_domain(domain: str | None) -> str | None:
    """Give a domain a scheme and drop trailing slashes.

    ``lms.example.edu/`` becomes ``https://lms.example.edu``. Blank input is None.
    """
    if domain is None:
        return None
    domain = domain.strip()
    if not domain:
        return None
    if "://" not in domain:
        domain = f"https://{domain}"
    return domain.rstrip("/")


class LmsConfig(BaseModel):
    """LMS connection settings.

    Attributes:
        domain: LMS host, with or without scheme.
        api_token: API access token. Read from the ``GRADEBOOK_SYNC_API_TOKEN``
            environment variable when not set in the file.
        course_id: Course to synchronize.
    """

    domain: str | None = None
    api_token: str | None = Field(default=None, validate_default=True)
    course_id: str | int | None = None

    @field_validator("domain", mode="before")
    @classmethod
    def add_scheme(cls, v: Any) -> str | None:
        """Add a scheme and strip trailing slashes."""
        return normalize_domain(v)

    @field_validator("api_token", mode="before")
    @classmethod
    def token_from_environment(cls, v: Any) -> str | None:
        """Fall back to the environment when no token is configured."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return os.getenv(API_TOKEN_ENV_VAR) or None
        return v

    def get_domain(self) -> str | None:
        return self.domain

    def get_auth_token(self) -> str | None:
        return self.api_token

    def get_course_id(self) -> str | int | None:
        return self.course_id


class SheetLayout(BaseModel):
    """Where roster and grades live in the workbook.

    Attributes:
        workbook: Path to the ``.xlsx`` file.
        sheet: Worksheet title; the active sheet when omitted.
        header_row: Row holding column titles.
        first_data_row: First row holding a student.
        sis_id_column: Column holding SIS ids.
        name_column: Column the roster pull writes names to.
        email_column: Column the roster pull writes emails to.
        gradebook_start_column: First column of a full gradebook pull.
    """

    workbook: Path
    sheet: str | None = None
    header_row: int = Field(default=1, ge=1)
    first_data_row: int = Field(default=2, ge=1)
    sis_id_column: str = "A"
    name_column: str = "B"
    email_column: str = "C"
    gradebook_start_column: str = "D"

    @field_validator("workbook", mode="before")
    @classmethod
    def convert_workbook_to_path(cls, v: Any) -> Path:
        """Convert workbook to Path object."""
        return Path(v) if not isinstance(v, Path) else v

    @field_validator("sis_id_column", "name_column", "email_column", "gradebook_start_column", mode="before")
    @classmethod
    def normalize_column(cls, v: Any) -> str:
        """Accept letters or a 1-based index and store upper-case letters."""
        if isinstance(v, int) and not isinstance(v, bool):
            return index_to_letter(v)
        letters = str(v)
        return index_to_letter(letter_to_index(letters))


class OperationalConfig(BaseModel):
    """Operational settings for requests, batches and output.

    Attributes:
        request_timeout_seconds: Timeout of every HTTP request.
        submission_pause_seconds: Pause between two grade posts.
        max_pages: Upper bound on pages fetched from one list endpoint.
        blank_grade_policy: ``skip`` leaves blank grade cells alone, ``clear``
            un-posts the grade for them.
        grade_field: Submission field pulled into the sheet.
        summary_display_limit: Reason lines shown on screen.
        log_path: File receiving the full log of every run.
    """

    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    submission_pause_seconds: float = Field(default=DEFAULT_SUBMISSION_PAUSE_SECONDS, ge=0)
    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1)
    blank_grade_policy: Literal["skip", "clear"] = "skip"
    grade_field: Literal["score", "grade"] = "score"
    summary_display_limit: int = Field(default=DEFAULT_SUMMARY_DISPLAY_LIMIT, ge=1)
    log_path: Path = Path(DEFAULT_LOG_PATH)


class Config(BaseModel):
    """Top-level configuration.

    Attributes:
        lms: LMS connection settings.
        sheet: Workbook layout.
        operational: Operational settings.
        report_path: Optional path to save the outcome of each grade push.
    """

    lms: LmsConfig = Field(default_factory=LmsConfig)
    sheet: SheetLayout
    operational: OperationalConfig = Field(default_factory=OperationalConfig)
    report_path: Path | None = None

    @field_validator("report_path", mode="before")
    @classmethod
    def convert_report_path_to_path(cls, v: Any) -> Path | None:
        """Convert report_path to Path object and check its format."""
        if v is None:
            return None
        path = Path(v) if not isinstance(v, Path) else v
        if path.suffix.lower() not in REPORT_SUFFIXES:
            raise ValueError(
                f"Unsupported report file extension: {path.suffix or '(none)'}. Supported formats: {', '.join(REPORT_SUFFIXES)}"
            )
        return path


def require_lms_settings(lms: LmsConfig) -> tuple[str, str, str | int]:
    """Return domain, token and course id, or fail naming every missing one.

    Raises:
        ConfigurationMissing: If any of the three settings is absent.
    """
    domain = lms.get_domain()
    token = lms.get_auth_token()
    course_id = lms.get_course_id()

    missing = []
    if not domain:
        missing.append("lms.domain")
    if not token:
        missing.append(f"lms.api_token (or {API_TOKEN_ENV_VAR})")
    if course_id is None or str(course_id).strip() == "":
        missing.append("lms.course_id")
    if missing:
        raise ConfigurationMissing(missing)
    return domain, token, course_id  # type: ignore[return-value]


def load_config(path: Path) -> Config:
    """Load YAML configuration and parse into Config model.

    Args:
        path: Path to YAML config.

    Returns:
        Parsed Config object with full validation.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If YAML is malformed.
        pydantic.ValidationError: If config structure is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        yaml_data = yaml.safe_load(f)

    return Config.model_validate(yaml_data or {})
