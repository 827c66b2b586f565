# file: src/colorado_wq/schema.py
"""
Column contracts at the Water Quality Portal boundary.

WQP CSV headers use '/' between the element and its attribute
(e.g. 'ResultMeasure/MeasureUnitCode'). Everything downstream of the
Cleaner only sees the canonical names on the right.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

RESULT_COLUMNS: dict[str, str] = {
    "ActivityStartDate": "date",
    "CharacteristicName": "parameter",
    "ResultMeasure/MeasureUnitCode": "units",
    "MonitoringLocationIdentifier": "site",
    "OrganizationFormalName": "org",
    "OrganizationIdentifier": "org_id",
    "ActivityStartTime/Time": "time",
    "ResultMeasureValue": "value",
    "SampleCollectionMethod/MethodName": "sample_method",
    "ResultAnalyticalMethod/MethodName": "analytical_method",
    "ResultParticleSizeBasisText": "particle_size",
    "ActivityStartDateTime": "date_time",
    "ActivityMediaName": "media",
    "ActivityDepthHeightMeasure/MeasureValue": "sample_depth",
    "ActivityDepthHeightMeasure/MeasureUnitCode": "sample_depth_unit",
    "ResultSampleFractionText": "fraction",
    "ResultStatusIdentifier": "status",
}

CLEAN_COLUMNS: list[str] = list(RESULT_COLUMNS.values())

SITE_COLUMNS: dict[str, str] = {
    "MonitoringLocationIdentifier": "site",
    "MonitoringLocationName": "name",
    "DrainageAreaMeasure/MeasureValue": "area",
    "DrainageAreaMeasure/MeasureUnitCode": "area_units",
    "LatitudeMeasure": "lat",
    "LongitudeMeasure": "long",
}

TIDY_COLUMNS: list[str] = ["date", "parameter", "site", "conc"]

# Tag added by the fetcher; not a provider column.
PCODE_COLUMN = "pcode"


def require_columns(df: pd.DataFrame, columns: Iterable[str], *, source: str) -> None:
    """Raise ValueError listing every expected column that is absent."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(
            f"{source} is missing expected columns: {missing}. "
            f"Got {len(df.columns)} columns: {list(df.columns)[:25]}"
        )
