"""
Colorado River basin water-quality workflow.

Step-by-step modules, in pipeline order:
1. sites / parameters - site catalog and characteristic-name aliases
2. wqp - Water Quality Portal fetch (results + site metadata)
3. cleaning - project, trim units, keep Water; drop tons/day, tidy
4. aggregate - daily means, annual mean/variance
5. reshape - annual long <-> wide (+ Mg + Ca)
6. modeling - per (parameter, site) OLS trend of annual mean on year
7. tasks / cli - idempotent orchestration and a Typer CLI
"""

from .aggregate import annual_summary, daily_average, site_year_coverage
from .cleaning import clean_observations, harmonize_units
from .config import PipelineConfig, load_config
from .modeling import GroupFit, fit_groups, rank_fits
from .parameters import PARAMETERS, ParameterAliases
from .reshape import attach_site_metadata, to_long, to_wide
from .sites import SITES, SiteInfo
from .wqp import WQPFetcher

__all__ = [
    "PipelineConfig",
    "load_config",
    "SITES",
    "SiteInfo",
    "PARAMETERS",
    "ParameterAliases",
    "WQPFetcher",
    "clean_observations",
    "harmonize_units",
    "daily_average",
    "annual_summary",
    "site_year_coverage",
    "to_wide",
    "to_long",
    "attach_site_metadata",
    "GroupFit",
    "fit_groups",
    "rank_fits",
]
