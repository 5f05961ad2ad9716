"""
Configuration for the HTML → Confluence importer.

Settings are resolved once, from lowest to highest precedence: built-in
defaults, a JSON file with ``confluence`` and ``migration`` sections,
environment variables (a ``.env`` file is loaded first) and explicit
overrides from the command line.  The result is a frozen
:class:`ImportConfig` that is passed to every component that needs it.

Example ``config/import_config.json``::

    {
      "confluence": {
        "base_url": "https://example.atlassian.net/wiki",
        "email": "me@example.com",
        "api_token": "...",
        "space_key": "DOCS",
        "parent_page_id": "12345"
      },
      "migration": {"html_root": "./site", "limit": null, "page_delay": 0.2}
    }
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

DEFAULT_CONFIG_FILE = "config/import_config.json"

# Environment variable → config field
ENV_VARS: Dict[str, str] = {
    "CONFLUENCE_BASE_URL": "base_url",
    "AUTH_EMAIL": "email",
    "API_TOKEN": "api_token",
    "SPACE_KEY": "space_key",
    "HTML_FOLDER_PATH": "html_root",
    "PARENT_PAGE_ID": "parent_page_id",
}


class ConfigError(Exception):
    """Raised when required settings are missing or invalid."""


@dataclass(frozen=True)
class ImportConfig:
    base_url: str = ""
    api_token: str = ""
    space_key: str = ""
    html_root: Path = Path(".")
    email: Optional[str] = None
    parent_page_id: Optional[str] = None

    index_file: str = "index.html"
    index_title: str = "Index Page"
    state_file: Optional[Path] = None

    # Execution modes
    dry_run: bool = False
    dry_run_local: bool = False
    dry_run_output_dir: Path = Path("dryrun-output")
    ignore_state: bool = False
    limit: Optional[int] = None

    # Reports
    log_path: Optional[Path] = None
    events_path: Optional[Path] = None
    publish_report: bool = False

    # Pacing and retries
    page_delay: float = 0.2
    requests_per_minute: int = 300
    max_attempts: int = 3
    base_delay: float = 1.0
    retry_delay: float = 1.0
    timeout: float = 30.0

    @property
    def api_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/api/content"

    @property
    def network_enabled(self) -> bool:
        return not (self.dry_run or self.dry_run_local)

    @property
    def resolved_state_file(self) -> Path:
        if self.state_file is not None:
            return Path(self.state_file)
        return Path(self.html_root) / "transfer-state.json"

    def with_overrides(self, **overrides: Any) -> "ImportConfig":
        """Return a copy with every non-``None`` override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return _coerce(dataclasses.replace(self, **values))

    def validate(self) -> None:
        if self.dry_run and self.dry_run_local:
            raise ConfigError("--dry-run and --dry-run-local are mutually exclusive")
        if self.network_enabled:
            missing = [
                env for env, attr in ENV_VARS.items()
                if attr in ("base_url", "api_token", "space_key") and not getattr(self, attr)
            ]
            if missing:
                raise ConfigError("Missing settings: " + ", ".join(missing))
            if not self.base_url.startswith(("http://", "https://")):
                raise ConfigError("CONFLUENCE_BASE_URL must be an http(s) URL")
        if not Path(self.html_root).is_dir():
            raise ConfigError(f"HTML_FOLDER_PATH folder not found: {self.html_root}")
        if self.limit is not None and self.limit < 0:
            raise ConfigError("limit must be zero or a positive integer")


_PATH_FIELDS = ("html_root", "state_file", "dry_run_output_dir", "log_path", "events_path")


def _coerce(cfg: ImportConfig) -> ImportConfig:
    changes: Dict[str, Any] = {}
    for name in _PATH_FIELDS:
        value = getattr(cfg, name)
        if value is not None and not isinstance(value, Path):
            changes[name] = Path(value)
    if cfg.limit is not None and not isinstance(cfg.limit, int):
        changes["limit"] = int(cfg.limit)
    return dataclasses.replace(cfg, **changes) if changes else cfg


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e
    values: Dict[str, Any] = {}
    for section in ("confluence", "migration"):
        values.update(data.get(section) or {})
    return values


def load_config(
    config_file: Optional[str] = DEFAULT_CONFIG_FILE,
    *,
    env_file: Optional[str] = None,
    **overrides: Any,
) -> ImportConfig:
    """
    Build and validate the import configuration.

    :param config_file: Optional JSON file with ``confluence`` and
        ``migration`` sections.  Missing files are ignored.
    :param env_file: Optional ``.env`` path; defaults to ``.env`` lookup.
    :param overrides: Values that win over file and environment, usually
        parsed command-line options.  ``None`` values are ignored.
    :raises ConfigError: if the resulting configuration is invalid.
    """
    load_dotenv(env_file, override=False)

    known = {f.name for f in dataclasses.fields(ImportConfig)}
    values: Dict[str, Any] = {}
    if config_file:
        for key, value in _read_config_file(Path(config_file)).items():
            if key in known and value is not None:
                values[key] = value
    for env, attr in ENV_VARS.items():
        value = os.getenv(env)
        if value:
            values[attr] = value

    cfg = ImportConfig().with_overrides(**values).with_overrides(**overrides)
    cfg.validate()
    return cfg
