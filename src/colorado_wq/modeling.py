"""Per-site, per-parameter linear trends in annual mean concentration.

Each (parameter, site) partition of the annual summary gets its own OLS fit
of mean ~ year. Fits are kept in a plain dict keyed by the partition tuple:

    fits[("Calcium", "USGS-09034500")].adj_r2
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .schema import require_columns

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, str]

MIN_DISTINCT_YEARS = 2

LEADERBOARD_COLUMNS = [
    "parameter",
    "site",
    "n_obs",
    "slope",
    "intercept",
    "adj_r2",
    "p_value",
    "log_likelihood",
    "aic",
]


@dataclass
class GroupFit:
    """Fitted trend for one (parameter, site) partition"""
    parameter: str
    site: str
    data: pd.DataFrame
    model: Any
    n_obs: int
    slope: float
    intercept: float
    adj_r2: float
    p_value: float
    log_likelihood: float
    aic: float

    @property
    def key(self) -> GroupKey:
        return (self.parameter, self.site)

    @property
    def is_saturated(self) -> bool:
        """No residual degrees of freedom: the line passes through every point."""
        return self.n_obs <= 2

    def summary_row(self) -> Dict[str, Any]:
        return {col: getattr(self, col) for col in LEADERBOARD_COLUMNS}


def fit_trend(df: pd.DataFrame) -> Any:
    """
    Fit mean ~ year by ordinary least squares (intercept included).

    Args:
        df: Rows with numeric `year` and `mean`, no NaN

    Returns:
        statsmodels RegressionResults
    """
    X = sm.add_constant(df["year"].astype(float).to_numpy(), has_constant="add")
    y = df["mean"].astype(float).to_numpy()

    # Two-point fits divide by zero residual df inside statsmodels.
    with warnings.catch_warnings(), np.errstate(divide="ignore", invalid="ignore"):
        warnings.simplefilter("ignore", RuntimeWarning)
        return sm.OLS(y, X).fit()


def _summarize(parameter: str, site: str, data: pd.DataFrame, results: Any) -> GroupFit:
    df_resid = float(results.df_resid)

    with warnings.catch_warnings(), np.errstate(divide="ignore", invalid="ignore"):
        warnings.simplefilter("ignore", RuntimeWarning)
        if df_resid > 0:
            adj_r2 = float(results.rsquared_adj)
            p_value = float(results.f_pvalue)
            llf = float(results.llf)
            aic = float(results.aic)
        else:
            # Zero residual df: the fit is exact and the likelihood is rounding noise.
            adj_r2 = p_value = llf = aic = np.nan

    intercept, slope = (float(v) for v in results.params)

    return GroupFit(
        parameter=parameter,
        site=site,
        data=data,
        model=results,
        n_obs=int(results.nobs),
        slope=slope,
        intercept=intercept,
        adj_r2=adj_r2,
        p_value=p_value,
        log_likelihood=llf,
        aic=aic,
    )


def fit_groups(
    annual: pd.DataFrame,
    skipped: Optional[list] = None,
) -> Dict[GroupKey, GroupFit]:
    """
    Fit one trend per (parameter, site) partition.

    Partitions with fewer than two distinct years (after dropping NaN means)
    have no slope to estimate and are skipped; pass a list as `skipped` to
    collect their keys. Partitions with exactly two points are fitted, but
    their adj_r2 and p_value are NaN.

    Returns:
        Dict mapping (parameter, site) -> GroupFit
    """
    require_columns(annual, ["parameter", "site", "year", "mean"], source="annual summary")

    fits: Dict[GroupKey, GroupFit] = {}
    n_skipped = 0
    for (parameter, site), part in annual.groupby(["parameter", "site"], sort=True):
        data = (
            part[["year", "mean"]]
            .dropna(subset=["mean"])
            .sort_values("year")
            .reset_index(drop=True)
        )

        if data["year"].nunique() < MIN_DISTINCT_YEARS:
            logger.info(
                "[model] skipping %s @ %s: %d distinct year(s)",
                parameter,
                site,
                data["year"].nunique(),
            )
            n_skipped += 1
            if skipped is not None:
                skipped.append((parameter, site))
            continue

        results = fit_trend(data)
        fits[(parameter, site)] = _summarize(parameter, site, data, results)

    logger.info(
        "[model] fitted %d partitions (%d skipped)",
        len(fits),
        n_skipped,
    )
    return fits


def rank_fits(fits: Dict[GroupKey, GroupFit]) -> pd.DataFrame:
    """Leaderboard of fits, best adjusted R^2 first; undefined values last."""
    if not fits:
        return pd.DataFrame(columns=LEADERBOARD_COLUMNS)

    leaderboard = pd.DataFrame([fit.summary_row() for fit in fits.values()])
    leaderboard = leaderboard.sort_values(
        ["adj_r2", "parameter", "site"],
        ascending=[False, True, True],
        na_position="last",
    ).reset_index(drop=True)
    return leaderboard[LEADERBOARD_COLUMNS]


def top_trends(fits: Dict[GroupKey, GroupFit], n: int = 10) -> Dict[GroupKey, GroupFit]:
    """The n best-fitting partitions, in ranking order."""
    ranked = rank_fits(fits).head(n)
    return {
        (row.parameter, row.site): fits[(row.parameter, row.site)]
        for row in ranked.itertuples(index=False)
    }
