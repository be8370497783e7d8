"""User profile and per-run configuration.

The profile is a small YAML file in the user config directory; it holds the
API key, transformation defaults, hash cache settings and the running credit
total. A run never reads the profile directly: it gets an immutable
``PipelineConfig`` built from it.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import platformdirs
import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .constants import (
    APP_NAME,
    CACHE_DB_FILE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TRANSLATE_URL,
    PROFILE_FILE,
    SYNC_TIMEOUT,
)
from .errors import ConfigError
from .models import SyncSession
from .transform_client import TransformOptions
from .utils import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

DATABASE_MODES = ("off", "local", "remote")

# Credits charged per successfully transformed file
MODEL_COSTS: Dict[str, int] = {
    "gemini-2.5-flash": 1,
    "gemini-3-flash": 1,
    "deepseek": 1,
    "grok-4-fast": 1,
}


def get_model_cost(model: str) -> int:
    """Credits charged for one file; unknown models cost 1."""
    return MODEL_COSTS.get(model, 1)


def default_config_dir() -> Path:
    """Directory holding profile.yaml and the hash cache database.

    ``TRANSBATCH_HOME`` overrides the platform default.
    """
    override = os.environ.get("TRANSBATCH_HOME")
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_config_dir(APP_NAME))


def default_profile_path() -> Path:
    return default_config_dir() / PROFILE_FILE


class Profile(BaseModel):
    """Persisted user settings (stored in profile.yaml)."""

    api_key: str = ""
    translate_url: str = DEFAULT_TRANSLATE_URL
    model: str = DEFAULT_MODEL
    target_lang: str = "en"
    font: str = "wildwords"
    text_align: str = "auto"
    stroke_disabled: bool = False
    inpaint_only: bool = False
    min_font_size: int = 12

    # Hash cache
    database_mode: str = "off"  # "off" | "local" | "remote"
    cache_path: str = ""        # empty = <config_dir>/hash_cache.db
    remote_db_url: str = ""
    remote_db_token: str = ""
    remote_db_user: str = ""
    remote_db_pass: str = ""

    total_credits_used: int = 0

    @field_validator("database_mode")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in DATABASE_MODES:
            raise ValueError(f"database_mode must be one of {', '.join(DATABASE_MODES)}")
        return value

    @property
    def cache_enabled(self) -> bool:
        return self.database_mode != "off"

    def resolved_api_key(self) -> str:
        """API key with the TRANSBATCH_API_KEY environment override applied."""
        return (os.environ.get("TRANSBATCH_API_KEY") or self.api_key).strip()

    def resolved_cache_path(self, config_dir: Optional[Path] = None) -> Path:
        if self.cache_path:
            return Path(self.cache_path).expanduser()
        return (config_dir or default_config_dir()) / CACHE_DB_FILE


def load_profile(path: Optional[Path] = None) -> Profile:
    """Load the profile, returning defaults if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a valid profile
    """
    path = Path(path) if path else default_profile_path()
    if not path.exists():
        logger.debug("No profile at %s, using defaults", path)
        return Profile()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Profile {path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Profile {path} must contain a mapping")

    try:
        return Profile(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid profile {path}: {e}") from e


def save_profile(profile: Profile, path: Optional[Path] = None) -> Path:
    """Atomically write the profile as YAML."""
    path = Path(path) if path else default_profile_path()
    text = yaml.safe_dump(profile.model_dump(), default_flow_style=False, sort_keys=False)
    atomic_write_text(path, text)
    logger.debug("Saved profile to %s", path)
    return path


def set_profile_value(profile: Profile, key: str, value: str) -> Profile:
    """Return a copy of the profile with one field set from its string form.

    Raises:
        ConfigError: Unknown key or a value that fails validation
    """
    if key not in Profile.model_fields:
        raise ConfigError(
            f"Unknown setting '{key}'. Valid keys: {', '.join(Profile.model_fields)}"
        )
    data = profile.model_dump()
    data[key] = value
    try:
        return Profile(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e


class PipelineConfig(BaseModel):
    """Everything one run needs, fixed for its duration."""

    model_config = ConfigDict(frozen=True)

    input_dir: Path
    output_dir: Path
    options: TransformOptions
    include: Optional[Tuple[str, ...]] = None
    cache_path: Optional[Path] = None  # None = hash cache disabled
    wait_for_cache: bool = True
    extra_ignores: Tuple[str, ...] = ()

    @property
    def cost_per_file(self) -> int:
        return get_model_cost(self.options.model)


def build_pipeline_config(
    profile: Profile,
    input_dir: Path,
    output_dir: Optional[Path] = None,
    include: Optional[List[str]] = None,
    config_dir: Optional[Path] = None,
) -> PipelineConfig:
    """Derive the run configuration from a profile.

    Args:
        profile: Loaded user profile
        input_dir: Directory to scan
        output_dir: Destination; defaults to <input_dir>/translated
        include: Optional allow-list of absolute path prefixes
        config_dir: Base for the default cache location

    Raises:
        ConfigError: If the input directory does not exist
    """
    input_dir = Path(input_dir).expanduser().resolve()
    if not input_dir.is_dir():
        raise ConfigError(f"Input directory not found: {input_dir}")

    output = Path(output_dir).expanduser().resolve() if output_dir else input_dir / DEFAULT_OUTPUT_DIR
    options = TransformOptions(
        model=profile.model,
        target_lang=profile.target_lang,
        font=profile.font,
        text_align=profile.text_align,
        stroke_disabled=profile.stroke_disabled,
        inpaint_only=profile.inpaint_only,
        min_font_size=profile.min_font_size,
    )
    return PipelineConfig(
        input_dir=input_dir,
        output_dir=output,
        options=options,
        include=tuple(str(Path(p).expanduser().resolve()) for p in include) if include else None,
        cache_path=profile.resolved_cache_path(config_dir) if profile.cache_enabled else None,
        extra_ignores=_output_ignores(input_dir, output),
    )


def _output_ignores(input_dir: Path, output_dir: Path) -> Tuple[str, ...]:
    """Anchored pattern excluding an output directory nested in the input root."""
    if output_dir == input_dir or not output_dir.is_relative_to(input_dir):
        return ()
    return (f"/{output_dir.relative_to(input_dir).as_posix()}/",)


def sync_session_from_profile(profile: Profile) -> SyncSession:
    """Connection parameters for push/pull/test.

    Raises:
        ConfigError: If the remote database is not enabled or has no URL
    """
    if profile.database_mode != "remote":
        raise ConfigError(
            "Remote sync requires database_mode 'remote' "
            "(transbatch config set database_mode remote)"
        )
    if not profile.remote_db_url.strip():
        raise ConfigError("No remote database URL configured (remote_db_url)")
    return SyncSession(
        url=profile.remote_db_url.strip(),
        token=profile.remote_db_token.strip(),
        username=profile.remote_db_user.strip(),
        password=profile.remote_db_pass,
        timeout=SYNC_TIMEOUT,
    )
