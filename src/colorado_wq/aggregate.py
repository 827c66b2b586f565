# src/colorado_wq/aggregate.py
from __future__ import annotations

import logging
from typing import Iterable

import pandas as pd

from .config import DEFAULT_DENYLIST
from .schema import TIDY_COLUMNS, require_columns

logger = logging.getLogger(__name__)

DAILY_KEYS = ["date", "parameter", "site"]
ANNUAL_KEYS = ["site", "year", "parameter"]


def daily_average(tidy: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse same-day samples to one row per (date, parameter, site).

    conc is the mean of the group's non-missing values; a group with no
    values at all keeps NaN rather than disappearing.
    """
    require_columns(tidy, TIDY_COLUMNS, source="tidy observations")

    daily = (
        tidy.groupby(DAILY_KEYS, as_index=False, dropna=False)["conc"]
        .mean()
        .sort_values(DAILY_KEYS)
        .reset_index(drop=True)
    )
    logger.info("[daily] %d tidy rows -> %d daily rows", len(tidy), len(daily))
    return daily


def _with_year(daily: pd.DataFrame) -> pd.DataFrame:
    out = daily.copy()
    out["year"] = pd.to_datetime(out["date"]).dt.year
    return out


def annual_summary(
    daily: pd.DataFrame,
    denylist: Iterable[str] = DEFAULT_DENYLIST,
) -> pd.DataFrame:
    """
    Annual mean and variance of daily concentrations.

    Sites in `denylist` are excluded before grouping. Variance uses the n-1
    divisor, so a single-day year reports NaN, not zero.

    Returns:
        DataFrame with columns [site, year, parameter, mean, var]
    """
    require_columns(daily, DAILY_KEYS + ["conc"], source="daily averages")

    denied = set(denylist)
    kept = daily[~daily["site"].isin(denied)]
    if len(kept) < len(daily):
        logger.info(
            "[annual] excluded %d daily rows from denylisted sites %s",
            len(daily) - len(kept),
            sorted(denied & set(daily["site"])),
        )

    annual = (
        _with_year(kept)
        .groupby(ANNUAL_KEYS, as_index=False)
        .agg(mean=("conc", "mean"), var=("conc", "var"))
        .sort_values(ANNUAL_KEYS)
        .reset_index(drop=True)
    )
    logger.info("[annual] %d site-year-parameter rows", len(annual))
    return annual


def site_year_coverage(daily: pd.DataFrame) -> pd.DataFrame:
    """Sampling years per site, the evidence behind the denylist."""
    require_columns(daily, DAILY_KEYS, source="daily averages")

    if daily.empty:
        return pd.DataFrame(columns=["site", "n_years", "first_year", "last_year", "n_days"])

    coverage = (
        _with_year(daily)
        .groupby("site")
        .agg(
            n_years=("year", "nunique"),
            first_year=("year", "min"),
            last_year=("year", "max"),
            n_days=("date", "nunique"),
        )
        .reset_index()
        .sort_values(["n_years", "site"])
        .reset_index(drop=True)
    )
    return coverage
