# src/colorado_wq/cleaning.py
"""
Clean and harmonize raw WQP results.

Steps:
1. clean_observations - project to canonical columns, trim units, keep Water
2. harmonize_units    - drop incompatible units, parse dates, reduce to tidy
"""

from __future__ import annotations

import logging
from typing import Iterable

import pandas as pd

from .config import DEFAULT_INCOMPATIBLE_UNITS
from .parameters import PARAMETERS
from .schema import CLEAN_COLUMNS, PCODE_COLUMN, RESULT_COLUMNS, TIDY_COLUMNS, require_columns

logger = logging.getLogger(__name__)


def _parse_dates(dates: pd.Series) -> pd.Series:
    """Year-month-day calendar dates; anything else becomes NaT."""
    if pd.api.types.is_datetime64_any_dtype(dates):
        return dates.dt.normalize()
    return pd.to_datetime(dates.astype("string").str.strip(), format="%Y-%m-%d", errors="coerce")


def clean_observations(df_raw: pd.DataFrame, sample_media: str = "Water") -> pd.DataFrame:
    """
    Project raw results onto the canonical column set.

    - Rename provider columns (see schema.RESULT_COLUMNS)
    - Strip whitespace around unit strings
    - Keep only rows sampled from `sample_media`

    The parameter-code tag added by the fetcher rides along when present.
    No other validation: malformed values pass through to the harmonizer.
    """
    require_columns(df_raw, RESULT_COLUMNS, source="raw observations")

    keep = list(RESULT_COLUMNS)
    if PCODE_COLUMN in df_raw.columns:
        keep.append(PCODE_COLUMN)

    df = df_raw[keep].rename(columns=RESULT_COLUMNS)
    df["units"] = df["units"].astype("string").str.strip()
    df = df[df["media"] == sample_media].reset_index(drop=True)

    logger.info("[clean] %d of %d rows kept (media=%s)", len(df), len(df_raw), sample_media)
    return df


def harmonize_units(
    df_clean: pd.DataFrame,
    incompatible_units: Iterable[str] = DEFAULT_INCOMPATIBLE_UNITS,
) -> pd.DataFrame:
    """
    Reduce cleaned observations to (date, parameter, site, conc).

    Remaining units are assumed mutually convertible to mg/L; no conversion is
    computed. Rows with an unparseable date are dropped with a warning.
    Non-numeric values become NaN and are kept as explicit missing.

    Args:
        df_clean: Output of clean_observations
        incompatible_units: Unit strings to drop outright

    Returns:
        DataFrame with columns [date, parameter, site, conc]
    """
    require_columns(df_clean, CLEAN_COLUMNS, source="clean observations")

    bad_units = set(incompatible_units)
    df = df_clean[~df_clean["units"].isin(bad_units)].copy()
    n_unit_drop = len(df_clean) - len(df)
    if n_unit_drop:
        logger.info("[harmonize] dropped %d rows in units %s", n_unit_drop, sorted(bad_units))

    parsed = _parse_dates(df["date"])
    bad_dates = parsed.isna()
    if bad_dates.any():
        logger.warning(
            "[harmonize] dropping %d rows with unparseable date, e.g. %s",
            int(bad_dates.sum()),
            df.loc[bad_dates, "date"].astype(str).head(3).tolist(),
        )
    df["date"] = parsed
    df = df[~bad_dates].copy()

    if PCODE_COLUMN in df.columns:
        names = df[PCODE_COLUMN].map({code: p.name for code, p in PARAMETERS.items()})
        df["parameter"] = names.fillna(df["parameter"])

    df["conc"] = pd.to_numeric(df["value"], errors="coerce")

    tidy = df[TIDY_COLUMNS].reset_index(drop=True)
    logger.info("[harmonize] tidy rows: %d", len(tidy))
    return tidy
