# file: src/colorado_wq/io_utils.py
"""
Artifact persistence.

Every writer lands a sibling `<name>.tmp` first and swaps it in with
os.replace, so a crashed run never leaves a half-written parquet, JSON or
bundle where the next task would pick it up as done.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import joblib
import pandas as pd

BUNDLE_KEYS = ("raw", "sites")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _replace_via_tmp(path: Path, write: Callable[[Path], Any]) -> None:
    ensure_dir(path.parent)
    tmp = path.with_name(path.name + ".tmp")
    write(tmp)
    os.replace(tmp, path)


def atomic_write_parquet(df: pd.DataFrame, path: Path) -> None:
    _replace_via_tmp(path, lambda tmp: df.to_parquet(tmp, index=False))


def atomic_write_json(payload: Dict[str, Any], path: Path) -> None:
    def _dump(tmp: Path) -> None:
        tmp.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")

    _replace_via_tmp(path, _dump)


def save_bundle(raw: pd.DataFrame, sites: pd.DataFrame, path: Path) -> None:
    """Raw observations + site metadata in one joblib archive, so reruns skip the portal."""
    _replace_via_tmp(path, lambda tmp: joblib.dump({"raw": raw, "sites": sites}, tmp))


def load_bundle(path: Path) -> Tuple[pd.DataFrame, pd.DataFrame]:
    payload = joblib.load(path)
    if not isinstance(payload, dict):
        raise ValueError(f"Bundle at {path} is not a dict (got {type(payload).__name__})")
    missing = [k for k in BUNDLE_KEYS if k not in payload]
    if missing:
        raise ValueError(f"Bundle at {path} is missing keys: {missing}")
    return payload["raw"], payload["sites"]
