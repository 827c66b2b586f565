# file: src/colorado_wq/config.py
"""
Pipeline Configuration

Keep the data-quality judgments (site denylist, incompatible units) here as
data so they can be audited without touching pipeline code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

from .parameters import list_parameters
from .sites import list_sites

WQP_BASE_URL = "https://www.waterqualitydata.us/data"

# Sites with too few sampling years to support an annual trend.
DEFAULT_DENYLIST: Tuple[str, ...] = (
    "USGS-09180000",
    "USGS-09180500",
    "USGS-09380000",
)

# Load rather than concentration; not convertible to mg/L.
DEFAULT_INCOMPATIBLE_UNITS: Tuple[str, ...] = ("tons/day",)


@dataclass(frozen=True)
class PipelineConfig:
    # Query
    start_date: str = "1980-10-01"
    end_date: str = "2020-10-01"
    sample_media: str = "Water"
    site_ids: Tuple[str, ...] = field(default_factory=lambda: tuple(list_sites()))
    parameter_codes: Tuple[str, ...] = field(default_factory=lambda: tuple(list_parameters()))

    # Data-quality judgments
    denylist: Tuple[str, ...] = DEFAULT_DENYLIST
    incompatible_units: Tuple[str, ...] = DEFAULT_INCOMPATIBLE_UNITS

    # Provider
    wqp_base_url: str = WQP_BASE_URL
    timeout: int = 600
    max_retries: int = 0
    max_workers: int = 1

    # IO
    data_dir: str = "data/colorado"
    artifacts_dir: str = "artifacts/colorado"
    overwrite: bool = False

    def run_id(self) -> str:
        return datetime.utcnow().strftime("%Y%m%d_%H%M%S")

    def data_path(self) -> Path:
        return Path(self.data_dir)

    def artifacts_path(self) -> Path:
        return Path(self.artifacts_dir)

    def bundle_path(self) -> Path:
        return self.data_path() / "wqp_raw.joblib"

    def tidy_path(self) -> Path:
        return self.data_path() / "tidy.parquet"

    def daily_path(self) -> Path:
        return self.data_path() / "daily.parquet"

    def annual_path(self) -> Path:
        return self.data_path() / "annual.parquet"

    def wide_path(self) -> Path:
        return self.data_path() / "annual_wide.parquet"

    def metadata_path(self) -> Path:
        return self.data_path() / "metadata.json"

    def leaderboard_path(self) -> Path:
        return self.artifacts_path() / "trend_leaderboard.parquet"


def load_config(**overrides) -> PipelineConfig:
    """
    Build a PipelineConfig from defaults, environment, and explicit overrides.

    Reads WQP_BASE_URL, COLORADO_WQ_DATA_DIR and COLORADO_WQ_ARTIFACTS_DIR from
    a .env file or the environment. Explicit keyword overrides win.
    """
    load_dotenv()

    env = {
        "wqp_base_url": os.getenv("WQP_BASE_URL"),
        "data_dir": os.getenv("COLORADO_WQ_DATA_DIR"),
        "artifacts_dir": os.getenv("COLORADO_WQ_ARTIFACTS_DIR"),
    }
    values = {k: v for k, v in env.items() if v}
    values.update({k: v for k, v in overrides.items() if v is not None})

    cfg = replace(PipelineConfig(), **values)

    if cfg.start_date > cfg.end_date:
        raise ValueError(
            f"start_date {cfg.start_date} is after end_date {cfg.end_date}"
        )
    if cfg.max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {cfg.max_workers}")

    return cfg
