# src/colorado_wq/wqp.py
"""
Water Quality Portal (WQP) client.

One request per canonical parameter: the portal query carries a single
characteristic-name group, so the synonyms for e.g. sulfate travel together
and the response is tagged with the parameter code that asked for it.
"""

from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, Optional, Sequence

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import WQP_BASE_URL, PipelineConfig
from .parameters import get_synonyms, validate_parameter
from .schema import PCODE_COLUMN, RESULT_COLUMNS, SITE_COLUMNS, require_columns

logger = logging.getLogger(__name__)

_DATETIME_COLUMN = "ActivityStartDateTime"


def to_wqp_date(iso_date: str) -> str:
    """WQP wants MM-DD-YYYY; the pipeline speaks ISO YYYY-MM-DD."""
    return datetime.strptime(iso_date, "%Y-%m-%d").strftime("%m-%d-%Y")


def _add_start_datetime(df: pd.DataFrame) -> pd.DataFrame:
    """Derive ActivityStartDateTime from date + time when the portal omits it."""
    if _DATETIME_COLUMN in df.columns:
        return df

    df = df.copy()
    if "ActivityStartDate" not in df.columns or "ActivityStartTime/Time" not in df.columns:
        df[_DATETIME_COLUMN] = pd.NaT
        return df

    has_time = df["ActivityStartTime/Time"].notna()
    combined = df["ActivityStartDate"].astype(str) + " " + df["ActivityStartTime/Time"].astype(str)
    df[_DATETIME_COLUMN] = pd.to_datetime(combined.where(has_time), errors="coerce")
    return df


class WQPFetcher:
    RESULT_ENDPOINT = "Result/search"
    STATION_ENDPOINT = "Station/search"

    def __init__(
        self,
        base_url: str = WQP_BASE_URL,
        *,
        timeout: int = 600,
        max_retries: int = 0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Portal data root (no trailing slash needed)
            timeout: Per-request timeout in seconds; full pulls are slow
            max_retries: Transient-error retries (0 = fail fast)
            session: Pre-built session, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or self._create_session()

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "WQPFetcher":
        return cls(
            config.wqp_base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retries = Retry(
            total=self.max_retries,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=frozenset(["GET"]),
        )
        session.mount("https://", HTTPAdapter(max_retries=retries))
        return session

    def _get_csv(self, endpoint: str, params: list[tuple[str, str]]) -> pd.DataFrame:
        url = f"{self.base_url}/{endpoint}"
        resp = self.session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()

        text = resp.text
        if not text.strip():
            return pd.DataFrame()

        # Everything as text; numeric coercion is the harmonizer's call.
        return pd.read_csv(io.StringIO(text), dtype=str, low_memory=False)

    def fetch_results(
        self,
        site_ids: Sequence[str],
        characteristic_names: Sequence[str],
        start_date: str,
        end_date: str,
        sample_media: str = "Water",
    ) -> pd.DataFrame:
        """
        Pull raw result records for a site set and one characteristic-name group.

        Returns the portal columns unchanged, plus ActivityStartDateTime when
        the portal did not send it. Raises ValueError if an expected column is
        missing from a non-empty response.
        """
        params: list[tuple[str, str]] = [("siteid", s) for s in site_ids]
        params.append(("sampleMedia", sample_media))
        params.append(("startDateLo", to_wqp_date(start_date)))
        params.append(("startDateHi", to_wqp_date(end_date)))
        params.extend(("characteristicName", c) for c in characteristic_names)
        params.append(("mimeType", "csv"))
        params.append(("zip", "no"))

        df = self._get_csv(self.RESULT_ENDPOINT, params)
        if df.empty and len(df.columns) == 0:
            return pd.DataFrame(columns=list(RESULT_COLUMNS))

        df = _add_start_datetime(df)
        require_columns(df, RESULT_COLUMNS, source="WQP result response")
        return df

    def fetch_parameter(
        self,
        code: str,
        site_ids: Sequence[str],
        start_date: str,
        end_date: str,
        sample_media: str = "Water",
    ) -> pd.DataFrame:
        """Fetch one canonical parameter and tag rows with its code."""
        if not validate_parameter(code):
            raise ValueError(f"Invalid parameter code: {code}")

        synonyms = get_synonyms(code)
        try:
            df = self.fetch_results(site_ids, synonyms, start_date, end_date, sample_media)
        except requests.RequestException as exc:
            raise RuntimeError(f"WQP fetch failed for parameter '{code}': {exc}") from exc

        df = df.copy()
        df[PCODE_COLUMN] = code
        logger.info("[wqp] %s %s: %d records", code, list(synonyms), len(df))
        return df

    def fetch_all_parameters(
        self,
        codes: Iterable[str],
        site_ids: Sequence[str],
        start_date: str,
        end_date: str,
        sample_media: str = "Water",
        *,
        max_workers: int = 1,
    ) -> pd.DataFrame:
        """
        Map fetch_parameter over codes and concatenate.

        Parameters share no state, so max_workers > 1 runs them on a thread
        pool. Output order follows `codes` regardless. The first failure
        propagates.
        """
        codes = list(codes)

        def _run_one(code: str) -> pd.DataFrame:
            return self.fetch_parameter(code, site_ids, start_date, end_date, sample_media)

        if max_workers > 1 and len(codes) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                frames = list(executor.map(_run_one, codes))
        else:
            frames = [_run_one(code) for code in codes]

        if not frames:
            return pd.DataFrame(columns=list(RESULT_COLUMNS) + [PCODE_COLUMN])

        df = pd.concat(frames, ignore_index=True)
        logger.info("[wqp] total records: %d across %d parameters", len(df), len(codes))
        return df

    def fetch_site_metadata(self, site_ids: Sequence[str]) -> pd.DataFrame:
        """
        One row per site: name, drainage area (+ unit) and coordinates.

        Duplicate rows (identical across every selected field) keep the first.
        """
        params: list[tuple[str, str]] = [("siteid", s) for s in site_ids]
        params.append(("mimeType", "csv"))
        params.append(("zip", "no"))

        try:
            df = self._get_csv(self.STATION_ENDPOINT, params)
        except requests.RequestException as exc:
            raise RuntimeError(f"WQP site metadata fetch failed: {exc}") from exc

        if df.empty and len(df.columns) == 0:
            return pd.DataFrame(columns=list(SITE_COLUMNS.values()))

        require_columns(df, SITE_COLUMNS, source="WQP station response")

        sites = df[list(SITE_COLUMNS)].rename(columns=SITE_COLUMNS).drop_duplicates(keep="first").copy()
        for col in ("area", "lat", "long"):
            sites[col] = pd.to_numeric(sites[col], errors="coerce")

        logger.info("[wqp] site metadata: %d rows for %d requested sites", len(sites), len(site_ids))
        return sites.reset_index(drop=True)


def pull_observations(config: PipelineConfig, fetcher: Optional[WQPFetcher] = None) -> pd.DataFrame:
    fetcher = fetcher or WQPFetcher.from_config(config)
    logger.info(
        "[wqp] pulling %d parameters for %d sites, %s to %s",
        len(config.parameter_codes),
        len(config.site_ids),
        config.start_date,
        config.end_date,
    )
    return fetcher.fetch_all_parameters(
        config.parameter_codes,
        config.site_ids,
        config.start_date,
        config.end_date,
        config.sample_media,
        max_workers=config.max_workers,
    )


def pull_site_metadata(config: PipelineConfig, fetcher: Optional[WQPFetcher] = None) -> pd.DataFrame:
    fetcher = fetcher or WQPFetcher.from_config(config)
    return fetcher.fetch_site_metadata(config.site_ids)
