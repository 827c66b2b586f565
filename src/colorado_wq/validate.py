"""
Integrity gates between pipeline stages.

Hard gates for data quality:
- Uniqueness: at most one row per stage key
- Denylist: no excluded site survives the annual stage
"""

from dataclasses import dataclass, field
from typing import Iterable, List

import pandas as pd


@dataclass
class KeyCheckResult:
    """Results of a key-uniqueness check"""
    is_valid: bool
    keys: List[str]
    n_rows: int
    n_duplicate_keys: int
    sample_duplicates: List[dict] = field(default_factory=list)


def check_unique_keys(df: pd.DataFrame, keys: List[str]) -> KeyCheckResult:
    """
    Check that no combination of `keys` occurs more than once.

    NaN key values count as equal to each other.
    """
    dup_mask = df.duplicated(subset=keys, keep=False)
    n_duplicate_keys = int(df.loc[dup_mask, keys].drop_duplicates().shape[0])

    return KeyCheckResult(
        is_valid=n_duplicate_keys == 0,
        keys=list(keys),
        n_rows=len(df),
        n_duplicate_keys=n_duplicate_keys,
        sample_duplicates=df.loc[dup_mask, keys].head(5).to_dict("records"),
    )


def check_denylist(df: pd.DataFrame, denylist: Iterable[str], site_col: str = "site") -> List[str]:
    """Denylisted sites still present in df (empty list = pass)."""
    present = set(df[site_col].dropna()) & set(denylist)
    return sorted(present)


def print_key_report(result: KeyCheckResult, title: str = "Key check") -> None:
    """Print a human-readable uniqueness report"""
    status = "PASS" if result.is_valid else "FAIL"
    print(f"\n=== {title}: {status} ===")
    print(f"Keys: {result.keys}")
    print(f"Rows: {result.n_rows}")
    print(f"Duplicate keys: {result.n_duplicate_keys}")
    if result.sample_duplicates:
        print(f"  First duplicates: {result.sample_duplicates}")
