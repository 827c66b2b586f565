# src/colorado_wq/reshape.py
"""
Long <-> wide reshaping of the annual summary.

Wide layout: one row per (site, year), one column per parameter holding the
annual mean, plus the derived Mg + Ca column.
"""

from __future__ import annotations

import logging

import pandas as pd

from .schema import require_columns

logger = logging.getLogger(__name__)

WIDE_KEYS = ["site", "year"]
COMBINED_COLUMN = "mg_plus_ca"
COMBINED_PARTS = ("Magnesium", "Calcium")


def to_wide(annual: pd.DataFrame) -> pd.DataFrame:
    """
    Pivot annual means so each parameter becomes a column.

    Raises:
        ValueError: if a (site, year, parameter) key appears more than once
    """
    require_columns(annual, WIDE_KEYS + ["parameter", "mean"], source="annual summary")

    long = annual.drop(columns=["var"], errors="ignore")

    dupes = long.duplicated(subset=WIDE_KEYS + ["parameter"], keep=False)
    if dupes.any():
        sample = long.loc[dupes, WIDE_KEYS + ["parameter"]].head(5).to_dict("records")
        raise ValueError(
            f"Cannot pivot: {int(dupes.sum())} rows share a (site, year, parameter) key. "
            f"Sample: {sample}"
        )

    wide = long.pivot(index=WIDE_KEYS, columns="parameter", values="mean").reset_index()
    wide.columns.name = None

    first, second = COMBINED_PARTS
    if first in wide.columns and second in wide.columns:
        wide[COMBINED_COLUMN] = wide[first] + wide[second]
    else:
        logger.warning(
            "[reshape] %s not computed; missing parameter columns among %s",
            COMBINED_COLUMN,
            list(COMBINED_PARTS),
        )
        wide[COMBINED_COLUMN] = float("nan")

    logger.info("[reshape] wide table: %d site-years x %d columns", len(wide), len(wide.columns))
    return wide


def to_long(wide: pd.DataFrame) -> pd.DataFrame:
    """
    Melt a wide table back to [site, year, parameter, mean].

    The derived column is dropped, as are the NaN cells the pivot introduced
    for site-years where a parameter was never sampled.
    """
    require_columns(wide, WIDE_KEYS, source="wide annual table")

    value_cols = [c for c in wide.columns if c not in WIDE_KEYS and c != COMBINED_COLUMN]
    long = (
        wide[WIDE_KEYS + value_cols]
        .melt(id_vars=WIDE_KEYS, var_name="parameter", value_name="mean")
        .dropna(subset=["mean"])
        .sort_values(["site", "year", "parameter"])
        .reset_index(drop=True)
    )
    return long


def attach_site_metadata(wide: pd.DataFrame, sites: pd.DataFrame) -> pd.DataFrame:
    """Left-join site attributes (name, area, coordinates, basin) onto the wide table."""
    require_columns(sites, ["site"], source="site metadata")

    dupes = sites["site"].duplicated()
    if dupes.any():
        raise ValueError(
            f"Site metadata has {int(dupes.sum())} duplicate site rows: "
            f"{sites.loc[dupes, 'site'].tolist()[:5]}"
        )

    return wide.merge(sites, on="site", how="left", validate="many_to_one")
