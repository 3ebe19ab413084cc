"""Environment-driven settings for the policy deployment run.

The connection and credential variables keep the names operators already
export for the installer (``APIM_HOST``, ``APIM_PORT``, ``ADMIN_USER``,
``ADMIN_PASS``, ``ADMIN_PASS_FILE``).  Tuning knobs that only this tool
understands use the ``POLICY_DEPLOY_`` prefix, for example
``POLICY_DEPLOY_WORKERS=2``.

Example:
    >>> settings = load_settings(host="apim.example.com", workers=2)
    >>> settings.verify_tls
    True
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .scoped_secrets import MASK

__all__ = [
    "DeploySettings",
    "load_settings",
    "INSECURE_HOSTS",
    "OUTPUT_DIRNAME",
    "LOG_FILENAME",
    "EXTRACT_DIRNAME",
    "POLICIES_ANCHOR",
]

#: Hosts for which TLS certificate verification is skipped (self-signed dev servers).
INSECURE_HOSTS = frozenset({"localhost", "127.0.0.1"})

OUTPUT_DIRNAME = "build-output"
LOG_FILENAME = "install.log"
EXTRACT_DIRNAME = "policy-extracts"

#: Directory under the project root whose first child segment names each policy.
POLICIES_ANCHOR = ("mediation", "ai")

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class DeploySettings(BaseSettings):
    """Connection, credential and tuning settings for one deployment run."""

    model_config = SettingsConfigDict(
        env_prefix="POLICY_DEPLOY_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    host: str = Field(default="localhost", validation_alias="APIM_HOST")
    port: int = Field(default=9443, ge=1, le=65535, validation_alias="APIM_PORT")
    admin_user: str = Field(default="admin", validation_alias="ADMIN_USER")
    admin_pass: Optional[SecretStr] = Field(default=None, validation_alias="ADMIN_PASS")
    admin_pass_file: Optional[Path] = Field(default=None, validation_alias="ADMIN_PASS_FILE")

    project_root: Path = Field(
        default_factory=Path.cwd,
        description="Directory holding the policies tree and build-output/",
    )
    workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Concurrent package deployments",
    )
    probe_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Connect timeout for the probe, registration and token calls",
    )
    deploy_timeout: float = Field(
        default=30.0,
        gt=0.0,
        le=600.0,
        description="Overall timeout for a single policy upload",
    )
    log_level: str = Field(default="INFO", description="Console/file log level")

    @field_validator("host", mode="before")
    @classmethod
    def normalize_host(cls, v: Any) -> str:
        host = str(v).strip()
        if not host:
            raise ValueError("host must not be empty")
        return host

    @field_validator("admin_user", mode="before")
    @classmethod
    def normalize_user(cls, v: Any) -> str:
        user = str(v).strip()
        if not user:
            raise ValueError("admin_user must not be empty")
        return user

    @field_validator("admin_pass", mode="before")
    @classmethod
    def drop_empty_password(cls, v: Any) -> Any:
        """Treat an exported-but-empty ``ADMIN_PASS`` as unset."""
        if v is None:
            return None
        if isinstance(v, SecretStr):
            return v if v.get_secret_value() else None
        return v if str(v) else None

    @field_validator("admin_pass_file", mode="before")
    @classmethod
    def normalize_pass_file(cls, v: Any) -> Optional[Path]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return Path(v).expanduser()

    @field_validator("project_root", mode="before")
    @classmethod
    def normalize_root(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        upper = str(v).upper()
        if upper not in _VALID_LEVELS:
            raise ValueError(f"level must be one of {sorted(_VALID_LEVELS)}, got '{v}'")
        return upper

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}"

    @property
    def verify_tls(self) -> bool:
        return self.host not in INSECURE_HOSTS

    @property
    def output_dir(self) -> Path:
        return self.project_root / OUTPUT_DIRNAME

    @property
    def log_path(self) -> Path:
        return self.output_dir / LOG_FILENAME

    @property
    def extract_dir(self) -> Path:
        return self.output_dir / EXTRACT_DIRNAME

    @property
    def policies_dir(self) -> Path:
        return self.project_root.joinpath(*POLICIES_ANCHOR)

    def describe(self) -> Dict[str, object]:
        """Return a printable view of the effective settings with secrets masked."""

        return {
            "host": self.host,
            "port": self.port,
            "base_url": self.base_url,
            "verify_tls": self.verify_tls,
            "admin_user": self.admin_user,
            "admin_pass": MASK if self.admin_pass is not None else None,
            "admin_pass_file": str(self.admin_pass_file) if self.admin_pass_file else None,
            "project_root": str(self.project_root),
            "policies_dir": str(self.policies_dir),
            "log_path": str(self.log_path),
            "extract_dir": str(self.extract_dir),
            "workers": self.workers,
            "probe_timeout": self.probe_timeout,
            "deploy_timeout": self.deploy_timeout,
            "log_level": self.log_level,
        }


def load_settings(**overrides: Any) -> DeploySettings:
    """Load settings from the environment and apply non-``None`` overrides.

    Overrides come from CLI options and win over environment values.

    Raises:
        ConfigError: If the combined values fail validation.
    """

    try:
        base = DeploySettings()
        updates = {key: value for key, value in overrides.items() if value is not None}
        if not updates:
            return base
        data = base.model_dump()
        data.update(updates)
        return DeploySettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid deployment settings: {exc}") from exc
