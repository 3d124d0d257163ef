"""Process-wide configuration for diskdive."""

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

log = logging.getLogger(__name__)

_ENV_PREFIX = "DISKDIVE_"


class Settings(BaseModel):
    """Read-only constants shared by the scanner, model and renderer."""

    model_config = ConfigDict(frozen=True)

    # Layout
    bar_width: int = Field(24, ge=1, description="Cells in a progress bar")
    max_viewport: int = Field(30, ge=1, description="Upper bound on visible rows")
    default_viewport: int = Field(12, ge=1, description="Rows used when terminal height is unknown")
    reserved_rows: int = Field(6, ge=0, description="Header/footer rows in list views")
    reserved_rows_large: int = Field(5, ge=0, description="Header/footer rows in the large files view")
    default_width: int = Field(80, ge=1, description="Columns used when terminal width is unknown")
    name_width_min: int = 24
    name_width_max: int = 60
    fixed_overhead: int = Field(61, description="Columns taken by everything except the name")

    # Animation
    spinner_frames: tuple[str, ...] = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
    tick_interval: float = Field(0.1, gt=0, description="Seconds between redraw ticks")

    # Scanning
    scan_workers: int = Field(8, ge=1, description="Concurrent subtree walkers per scan")
    large_file_threshold: int = Field(100 * 1024**2, ge=0, description="Minimum large file size")
    max_large_files: int = Field(30, ge=1, description="Large files kept per scan")
    overview_paths: list[str] = Field(
        default_factory=list, description="Overview roots; platform defaults when empty"
    )

    # Hints
    unused_days: int = Field(90, ge=1, description="Age before an entry gets an unused label")


DEFAULT_SETTINGS = Settings()


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from defaults plus environment overrides.

    Recognised variables: DISKDIVE_SCAN_WORKERS, DISKDIVE_LARGE_FILE_MB and
    DISKDIVE_OVERVIEW_PATHS (os.pathsep separated). Each override is validated
    on its own; an invalid one is logged and its default kept.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated Settings
    """
    env = os.environ if environ is None else environ
    overrides: dict = {}

    if env.get(_ENV_PREFIX + "SCAN_WORKERS"):
        overrides["scan_workers"] = env[_ENV_PREFIX + "SCAN_WORKERS"]

    large_mb = env.get(_ENV_PREFIX + "LARGE_FILE_MB")
    if large_mb:
        try:
            overrides["large_file_threshold"] = int(float(large_mb) * 1024**2)
        except (ValueError, OverflowError):
            log.warning("Ignoring invalid %sLARGE_FILE_MB=%r", _ENV_PREFIX, large_mb)

    paths = env.get(_ENV_PREFIX + "OVERVIEW_PATHS")
    if paths:
        overrides["overview_paths"] = [p for p in paths.split(os.pathsep) if p]

    valid: dict = {}
    for key, value in overrides.items():
        try:
            Settings(**{key: value})
        except ValidationError as e:
            log.warning("Ignoring invalid %s override: %s", key, e)
            continue
        valid[key] = value
    return Settings(**valid)
