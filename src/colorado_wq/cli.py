from __future__ import annotations

import logging
import sys

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from .config import load_config
from .tasks import ingest, run_full_pipeline

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
app = typer.Typer(add_completion=False)
console = Console()


def _strip_ipykernel_args(argv: list[str]) -> list[str]:
    """Drop the `-f <connection_file>` pair a Jupyter kernel adds to sys.argv."""
    kept = argv[:1]
    rest = iter(argv[1:])
    for arg in rest:
        if arg in ("-f", "--f"):
            next(rest, None)
        elif not arg.startswith("--f="):
            kept.append(arg)
    return kept


def _results_table(results: dict) -> Table:
    table = Table(title="Colorado WQ run")
    table.add_column("Output", style="cyan")
    table.add_column("Path / count", style="green", overflow="fold")
    for name, value in results.items():
        table.add_row(name, str(value))
    return table


@app.command()
def run(
    start_date: str = "1980-10-01",
    end_date: str = "2020-10-01",
    data_dir: str = typer.Option(None, help="Where raw/intermediate tables live"),
    artifacts_dir: str = typer.Option(None, help="Where the trend leaderboard goes"),
    max_workers: int = 1,
    overwrite: bool = False,
):
    """Fetch, clean, aggregate, reshape and fit trends end to end."""
    cfg = load_config(
        start_date=start_date,
        end_date=end_date,
        data_dir=data_dir,
        artifacts_dir=artifacts_dir,
        max_workers=max_workers,
        overwrite=overwrite,
    )

    console.print(_results_table(run_full_pipeline(cfg)))


@app.command()
def fetch(
    start_date: str = "1980-10-01",
    end_date: str = "2020-10-01",
    data_dir: str = typer.Option(None, help="Where the raw bundle is written"),
    max_workers: int = 1,
    overwrite: bool = False,
):
    """Pull observations and site metadata from WQP into the raw bundle."""
    cfg = load_config(
        start_date=start_date,
        end_date=end_date,
        data_dir=data_dir,
        max_workers=max_workers,
        overwrite=overwrite,
    )
    path = ingest(cfg)
    console.print(f"[green]Bundle:[/green] {path}")


@app.command()
def rank(
    top: int = 10,
    artifacts_dir: str = typer.Option(None, help="Where the trend leaderboard lives"),
):
    """Show the best-fitting per-site trends from the last run."""
    cfg = load_config(artifacts_dir=artifacts_dir)
    path = cfg.leaderboard_path()
    if not path.exists():
        console.print(f"[red]No leaderboard at {path}; run the pipeline first.[/red]")
        raise typer.Exit(code=1)

    leaderboard = pd.read_parquet(path).head(top)

    table = Table(title=f"Top {top} trends by adjusted R²")
    for col in ("parameter", "site", "n_obs", "slope", "adj_r2", "p_value", "aic"):
        table.add_column(col, style="cyan" if col in ("parameter", "site") else "green")

    for row in leaderboard.itertuples(index=False):
        table.add_row(
            row.parameter,
            row.site,
            str(row.n_obs),
            f"{row.slope:.4f}",
            f"{row.adj_r2:.3f}",
            f"{row.p_value:.3g}",
            f"{row.aic:.1f}",
        )

    console.print(table)


if __name__ == "__main__":
    sys.argv = _strip_ipykernel_args(sys.argv)
    app(standalone_mode=False)
