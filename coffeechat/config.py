"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import Dict, List, Sequence

import pendulum
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from .domain.models import AvailabilitySettings

SMTP_PASSWORD_ENV = "COFFEECHAT_SMTP_PASSWORD"


class SmtpConfig(BaseModel):
    """SMTP server settings."""
    host: str
    port: int = 587
    user: str
    password: SecretStr = SecretStr("")
    from_email: str
    use_starttls: bool = True

    @field_validator("port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        """Ensure the port is a valid TCP port."""
        if not 0 < value < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {value}")
        return value

    def is_complete(self) -> bool:
        """Check that everything needed to log in and send is present."""
        return all([self.host, self.user, self.from_email, self.password.get_secret_value()])


class SenderConfig(BaseModel):
    """Who the invitations come from."""
    name: str
    template_path: Path = Path("email_template.txt")


class Recipient(BaseModel):
    """Invitation recipient."""
    name: str
    email: str


class CalendarConfig(BaseModel):
    """Calendar access and slot search settings."""
    credentials_path: Path = Path("credentials.json")
    token_cache_path: Path = Field(default_factory=lambda: Path.home() / ".coffeechat_token.json")
    calendar_id: str | None = None  # None: use the primary calendar
    timezone: str = "UTC"
    lookahead_days: int = 14
    buffer_minutes: int = 15
    day_start_hour: int = 9
    day_end_hour: int = 21
    min_slot_minutes: int = 30

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        """Buffer is limited to one hour on each side."""
        if not 0 <= value <= 60:
            raise ValueError(f"buffer_minutes must be between 0 and 60, got {value}")
        return value

    @field_validator("lookahead_days", "min_slot_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("day_start_hour", "day_end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "CalendarConfig":
        """Ensure the configured window opens before it closes."""
        if self.day_end_hour <= self.day_start_hour:
            raise ValueError("day_end_hour must be later than day_start_hour")
        return self

    def availability_settings(self) -> AvailabilitySettings:
        """Build the search parameters from the configured defaults."""
        return AvailabilitySettings(
            buffer_minutes=self.buffer_minutes,
            day_start_hour=self.day_start_hour,
            day_end_hour=self.day_end_hour,
            min_slot_minutes=self.min_slot_minutes,
        )


class AppConfig(BaseModel):
    """Everything read from ``config.yaml``."""
    smtp: SmtpConfig
    sender: SenderConfig
    recipients: List[Recipient] = Field(default_factory=list)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)

    @field_validator("recipients")
    @classmethod
    def validate_recipients(cls, value: List[Recipient]) -> List[Recipient]:
        """Names and emails must each be unique, ignoring case."""
        for attribute in ("name", "email"):
            keys = [getattr(recipient, attribute).lower() for recipient in value]
            duplicates = sorted({key for key in keys if keys.count(key) > 1})
            if duplicates:
                raise ValueError(f"Duplicate recipient {attribute} detected: {', '.join(duplicates)}")
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Read and validate a YAML config file.

        Variables from a ``.env`` file beside the config, or in the working
        directory, are loaded first; ``COFFEECHAT_SMTP_PASSWORD`` replaces
        the SMTP password from the file.

        Raises:
            FileNotFoundError: If ``config_path`` does not exist
            ValueError: If the file is not valid YAML or fails validation
        """
        config_path = Path(config_path)
        if not config_path.is_file():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                "Copy config.example.yaml to config.yaml and fill it in."
            )

        load_dotenv(config_path.parent / ".env")
        load_dotenv()

        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        data = raw if raw is not None else {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a mapping at the top level")

        password = os.environ.get(SMTP_PASSWORD_ENV)
        if password and isinstance(data.get("smtp"), dict):
            data["smtp"] = {**data["smtp"], "password": password}

        return cls(**data)

    def find_recipient(self, identifier: str) -> Recipient | None:
        """Look up a configured recipient by name or email, ignoring case."""
        key = identifier.lower()
        return next(
            (r for r in self.recipients if key in (r.name.lower(), r.email.lower())),
            None,
        )

    def resolve_recipients(self, identifiers: Sequence[str]) -> List[Recipient]:
        """
        Turn command line names or emails into recipients.

        No identifiers selects every configured recipient. An email address
        missing from the config becomes an ad-hoc recipient named after its
        local part. Each email appears at most once in the result.

        Raises:
            ValueError: If a name matches no configured recipient
        """
        if not identifiers:
            return list(self.recipients)

        by_email: Dict[str, Recipient] = {}
        unknown: List[str] = []

        for identifier in identifiers:
            recipient = self.find_recipient(identifier)
            if recipient is None and "@" in identifier:
                recipient = Recipient(name=identifier.split("@", 1)[0], email=identifier.lower())

            if recipient is None:
                unknown.append(identifier)
            else:
                by_email.setdefault(recipient.email.lower(), recipient)

        if unknown:
            raise ValueError(
                f"Unknown recipient identifier(s): {', '.join(sorted(set(unknown)))}. "
                "Use a configured name or a full email address."
            )

        return list(by_email.values())


def get_default_config_path() -> Path:
    """``./config.yaml`` if present, otherwise the one beside the package."""
    candidate = Path.cwd() / "config.yaml"
    if candidate.exists():
        return candidate
    return Path(__file__).resolve().parent.parent / "config.yaml"
