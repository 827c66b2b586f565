# src/colorado_wq/sites.py
from __future__ import annotations

from typing import NamedTuple

import pandas as pd


class SiteInfo(NamedTuple):
    """Monitoring location in the upper Colorado River basin."""
    site_id: str
    basin: str


SITES: dict[str, SiteInfo] = {
    # Colorado mainstem, headwaters to the state line
    "USGS-09034500": SiteInfo("USGS-09034500", "colorado1"),
    "USGS-09095500": SiteInfo("USGS-09095500", "colorado3"),
    "USGS-09180500": SiteInfo("USGS-09180500", "colorado4"),
    "USGS-09380000": SiteInfo("USGS-09380000", "colorado5"),

    # Tributaries
    "USGS-09069000": SiteInfo("USGS-09069000", "eagle"),
    "USGS-09085000": SiteInfo("USGS-09085000", "roaring"),
    "USGS-09152500": SiteInfo("USGS-09152500", "gunnison"),
    "USGS-09180000": SiteInfo("USGS-09180000", "dolores"),
}


def list_sites() -> list[str]:
    return sorted(SITES.keys())


def get_site_info(site_id: str) -> SiteInfo:
    return SITES[site_id]


def get_basin(site_id: str) -> str:
    return SITES[site_id].basin


def validate_site(site_id: str) -> bool:
    return site_id in SITES


def site_catalog_frame() -> pd.DataFrame:
    """Catalog as a two-column table (site, basin) for joins."""
    return pd.DataFrame(
        [(s.site_id, s.basin) for s in SITES.values()],
        columns=["site", "basin"],
    ).sort_values("site").reset_index(drop=True)
