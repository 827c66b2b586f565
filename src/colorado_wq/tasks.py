from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

import pandas as pd

from .aggregate import ANNUAL_KEYS, DAILY_KEYS, annual_summary, daily_average, site_year_coverage
from .cleaning import clean_observations, harmonize_units
from .config import PipelineConfig
from .io_utils import atomic_write_json, atomic_write_parquet, ensure_dir, load_bundle, save_bundle
from .modeling import fit_groups, rank_fits
from .reshape import attach_site_metadata, to_wide
from .sites import site_catalog_frame
from .validate import check_denylist, check_unique_keys
from .wqp import WQPFetcher, pull_observations, pull_site_metadata

logger = logging.getLogger(__name__)


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_unique(df: pd.DataFrame, keys: list[str], stage: str) -> None:
    result = check_unique_keys(df, keys)
    if not result.is_valid:
        raise ValueError(
            f"{stage} integrity failed: {result.n_duplicate_keys} duplicated {keys} keys; "
            f"e.g. {result.sample_duplicates}"
        )


def ingest(config: PipelineConfig, fetcher: Optional[WQPFetcher] = None) -> str:
    bundle_path = config.bundle_path()
    ensure_dir(bundle_path.parent)

    if bundle_path.exists() and not config.overwrite:
        logger.info("[ingest] bundle exists, skipping: %s", bundle_path)
        return str(bundle_path)

    fetcher = fetcher or WQPFetcher.from_config(config)
    df_raw = pull_observations(config, fetcher)
    df_sites = pull_site_metadata(config, fetcher)

    save_bundle(df_raw, df_sites, bundle_path)
    logger.info(
        "[ingest] wrote bundle: %s (%s observations, %s sites)",
        bundle_path,
        len(df_raw),
        len(df_sites),
    )
    return str(bundle_path)


def prepare(bundle_path: str, config: PipelineConfig) -> Dict[str, str]:
    tidy_path = config.tidy_path()
    daily_path = config.daily_path()

    if tidy_path.exists() and daily_path.exists() and not config.overwrite:
        logger.info("[prepare] tidy/daily exist, skipping: %s", daily_path)
        return {"tidy": str(tidy_path), "daily": str(daily_path)}

    df_raw, _ = load_bundle(bundle_path)
    df_clean = clean_observations(df_raw, sample_media=config.sample_media)
    df_tidy = harmonize_units(df_clean, config.incompatible_units)
    df_daily = daily_average(df_tidy)

    _require_unique(df_daily, DAILY_KEYS, "Daily averages")

    atomic_write_parquet(df_tidy, tidy_path)
    atomic_write_parquet(df_daily, daily_path)
    logger.info("[prepare] wrote tidy (%s rows) and daily (%s rows)", len(df_tidy), len(df_daily))
    return {"tidy": str(tidy_path), "daily": str(daily_path)}


def summarize(
    daily_path: str,
    bundle_path: str,
    config: PipelineConfig,
) -> Dict[str, str]:
    annual_path = config.annual_path()
    wide_path = config.wide_path()

    if annual_path.exists() and wide_path.exists() and not config.overwrite:
        logger.info("[summarize] annual/wide exist, skipping: %s", annual_path)
        return {"annual": str(annual_path), "wide": str(wide_path)}

    df_daily = pd.read_parquet(daily_path)
    df_annual = annual_summary(df_daily, config.denylist)

    _require_unique(df_annual, ANNUAL_KEYS, "Annual summary")
    leaked = check_denylist(df_annual, config.denylist)
    if leaked:
        raise ValueError(f"Annual summary still contains denylisted sites: {leaked}")

    _, df_sites = load_bundle(bundle_path)
    n_sites = len(df_sites)
    df_sites = df_sites.drop_duplicates(subset="site", keep="first")
    if len(df_sites) < n_sites:
        logger.warning(
            "[summarize] site metadata had %d conflicting rows; kept first per site",
            n_sites - len(df_sites),
        )
    sites = site_catalog_frame().merge(df_sites, on="site", how="left")
    df_wide = attach_site_metadata(to_wide(df_annual), sites)

    atomic_write_parquet(df_annual, annual_path)
    atomic_write_parquet(df_wide, wide_path)
    logger.info("[summarize] wrote annual (%s rows) and wide (%s rows)", len(df_annual), len(df_wide))
    return {"annual": str(annual_path), "wide": str(wide_path)}


def _previous_skips(config: PipelineConfig) -> list:
    path = config.metadata_path()
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return json.load(f).get("skipped_partitions", [])


def model(annual_path: str, config: PipelineConfig) -> Dict:
    leaderboard_path = config.leaderboard_path()

    if leaderboard_path.exists() and not config.overwrite:
        logger.info("[model] leaderboard exists, skipping: %s", leaderboard_path)
        return {
            "leaderboard_path": str(leaderboard_path),
            "n_fits": len(pd.read_parquet(leaderboard_path)),
            "skipped": _previous_skips(config),
        }

    df_annual = pd.read_parquet(annual_path)

    skipped: list = []
    fits = fit_groups(df_annual, skipped=skipped)
    leaderboard = rank_fits(fits)

    atomic_write_parquet(leaderboard, leaderboard_path)
    logger.info("[model] wrote leaderboard: %s (%s fits)", leaderboard_path, len(leaderboard))

    return {
        "leaderboard_path": str(leaderboard_path),
        "n_fits": len(fits),
        "skipped": [list(k) for k in skipped],
    }


def run_full_pipeline(config: PipelineConfig, fetcher: Optional[WQPFetcher] = None) -> Dict:
    run_id = config.run_id()

    bundle = ingest(config, fetcher=fetcher)
    prepared = prepare(bundle, config)
    summary = summarize(prepared["daily"], bundle, config)
    model_info = model(summary["annual"], config)

    df_daily = pd.read_parquet(prepared["daily"])
    coverage = site_year_coverage(df_daily)

    metadata = {
        "run_id": run_id,
        "finished_at": _utc_iso(),
        "start_date": config.start_date,
        "end_date": config.end_date,
        "sites": list(config.site_ids),
        "parameters": list(config.parameter_codes),
        "denylist": list(config.denylist),
        "incompatible_units": list(config.incompatible_units),
        "tidy_rows": int(len(pd.read_parquet(prepared["tidy"]))),
        "daily_rows": int(len(df_daily)),
        "annual_rows": int(len(pd.read_parquet(summary["annual"]))),
        "site_years": int(len(pd.read_parquet(summary["wide"]))),
        "n_fits": model_info["n_fits"],
        "skipped_partitions": model_info["skipped"],
        "coverage": coverage.to_dict("records"),
    }
    atomic_write_json(metadata, config.metadata_path())

    return {
        "run_id": run_id,
        "bundle": bundle,
        "tidy": prepared["tidy"],
        "daily": prepared["daily"],
        "annual": summary["annual"],
        "wide": summary["wide"],
        "leaderboard": model_info["leaderboard_path"],
        "metadata": str(config.metadata_path()),
        "n_fits": model_info["n_fits"],
        "skipped": len(model_info["skipped"]),
    }
