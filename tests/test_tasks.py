"""End-to-end pipeline tests with a fake portal.

Run with:
    pytest tests/test_tasks.py -v
"""

import json
from dataclasses import replace

import pandas as pd
import pytest
from typer.testing import CliRunner

from colorado_wq.cli import _strip_ipykernel_args, app
from colorado_wq.config import PipelineConfig
from colorado_wq.io_utils import atomic_write_json, load_bundle, save_bundle
from colorado_wq.reshape import COMBINED_COLUMN
from colorado_wq.tasks import ingest, model, prepare, run_full_pipeline
from colorado_wq.wqp import WQPFetcher

from .raw_builders import build_raw

MAIN = "USGS-09034500"
DENIED = "USGS-09180000"


class FakePortal(WQPFetcher):
    """WQPFetcher that answers from in-memory tables instead of HTTP."""

    def __init__(self):
        super().__init__(session=object())
        self.result_calls = []
        self.site_calls = 0

    def fetch_results(self, site_ids, characteristic_names, start_date, end_date, sample_media="Water"):
        self.result_calls.append(tuple(characteristic_names))
        if "Calcium" in characteristic_names:
            return build_raw([
                {"ActivityStartDate": "2018-06-01", "ResultMeasureValue": "8"},
                {"ActivityStartDate": "2019-06-01", "ResultMeasureValue": "9"},
                # same-day duplicates
                {"ActivityStartDate": "2020-06-01", "ResultMeasureValue": "10"},
                {"ActivityStartDate": "2020-06-01", "ResultMeasureValue": "20"},
                {"ActivityStartDate": "2019-06-01", "MonitoringLocationIdentifier": DENIED},
                {"ActivityStartDate": "2020-06-01", "MonitoringLocationIdentifier": DENIED},
                # dropped upstream of tidy
                {"ActivityStartDate": "2020-07-01", "ResultMeasure/MeasureUnitCode": "tons/day"},
                {"ActivityStartDate": "2020-08-01", "ActivityMediaName": "Sediment"},
            ])
        if "Magnesium" in characteristic_names:
            return build_raw([
                {"CharacteristicName": "Magnesium", "ActivityStartDate": "2018-06-01", "ResultMeasureValue": "2"},
                {"CharacteristicName": "Magnesium", "ActivityStartDate": "2019-06-01", "ResultMeasureValue": "3"},
                {"CharacteristicName": "Magnesium", "ActivityStartDate": "2020-06-01", "ResultMeasureValue": "5"},
            ])
        return build_raw([])

    def fetch_site_metadata(self, site_ids):
        self.site_calls += 1
        return pd.DataFrame({
            "site": [MAIN, DENIED],
            "name": ["COLORADO RIVER NEAR HOT SULPHUR SPRINGS", "DOLORES RIVER"],
            "area": [825.0, 4580.0],
            "area_units": ["sq mi", "sq mi"],
            "lat": [40.08, 38.76],
            "long": [-106.09, -108.83],
        })


class ExplodingPortal(WQPFetcher):
    def __init__(self):
        super().__init__(session=object())

    def fetch_results(self, *args, **kwargs):
        raise AssertionError("portal should not be called")


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        parameter_codes=("ca", "mg"),
        site_ids=(MAIN, DENIED),
        data_dir=str(tmp_path / "data"),
        artifacts_dir=str(tmp_path / "artifacts"),
    )


class TestBundle:
    def test_roundtrip(self, tmp_path):
        raw = build_raw([{}])
        sites = pd.DataFrame({"site": [MAIN]})
        path = tmp_path / "b.joblib"

        save_bundle(raw, sites, path)
        raw2, sites2 = load_bundle(path)

        pd.testing.assert_frame_equal(raw, raw2)
        pd.testing.assert_frame_equal(sites, sites2)

    @pytest.mark.fail_loud
    def test_missing_key_raises(self, tmp_path):
        import joblib

        path = tmp_path / "b.joblib"
        joblib.dump({"raw": build_raw([{}])}, path)
        with pytest.raises(ValueError, match="sites"):
            load_bundle(path)

    def test_atomic_writes_leave_no_tmp(self, tmp_path):
        path = tmp_path / "out" / "meta.json"
        atomic_write_json({"n": 1}, path)

        with open(path, encoding="utf-8") as f:
            assert json.load(f) == {"n": 1}
        assert [p.name for p in path.parent.iterdir()] == ["meta.json"]


class TestIngest:
    def test_one_request_per_parameter(self, config):
        portal = FakePortal()
        ingest(config, fetcher=portal)

        assert portal.result_calls == [("Calcium",), ("Magnesium",)]
        assert portal.site_calls == 1
        raw, sites = load_bundle(config.bundle_path())
        assert set(raw["pcode"]) == {"ca", "mg"}
        assert len(sites) == 2

    def test_existing_bundle_skips_fetch(self, config):
        ingest(config, fetcher=FakePortal())
        ingest(config, fetcher=ExplodingPortal())

    def test_overwrite_refetches(self, config):
        ingest(config, fetcher=FakePortal())
        portal = FakePortal()
        cfg = replace(config, overwrite=True)
        ingest(cfg, fetcher=portal)
        assert len(portal.result_calls) == 2


class TestFullPipeline:
    def test_same_day_duplicates_collapse(self, config):
        run_full_pipeline(config, fetcher=FakePortal())

        tidy = pd.read_parquet(config.tidy_path())
        daily = pd.read_parquet(config.daily_path())

        key = (
            (daily["date"] == pd.Timestamp("2020-06-01"))
            & (daily["parameter"] == "Calcium")
            & (daily["site"] == MAIN)
        )
        assert daily.loc[key, "conc"].tolist() == [15.0]
        assert len(daily) == len(tidy) - 1

    def test_units_and_media_filtered(self, config):
        run_full_pipeline(config, fetcher=FakePortal())
        tidy = pd.read_parquet(config.tidy_path())

        assert pd.Timestamp("2020-07-01") not in set(tidy["date"])
        assert pd.Timestamp("2020-08-01") not in set(tidy["date"])

    def test_annual_and_wide(self, config):
        run_full_pipeline(config, fetcher=FakePortal())

        annual = pd.read_parquet(config.annual_path())
        assert DENIED not in set(annual["site"])
        assert not annual.duplicated(subset=["site", "year", "parameter"]).any()

        wide = pd.read_parquet(config.wide_path())
        assert len(wide) == 3
        row_2020 = wide[wide["year"] == 2020].iloc[0]
        assert row_2020["Calcium"] == 15.0
        assert row_2020[COMBINED_COLUMN] == 20.0
        assert row_2020["basin"] == "colorado1"
        assert row_2020["area"] == 825.0

    def test_leaderboard_and_metadata(self, config):
        results = run_full_pipeline(config, fetcher=FakePortal())

        board = pd.read_parquet(config.leaderboard_path())
        assert set(zip(board["parameter"], board["site"])) == {("Calcium", MAIN), ("Magnesium", MAIN)}
        assert results["n_fits"] == 2

        with open(config.metadata_path(), encoding="utf-8") as f:
            metadata = json.load(f)
        assert metadata["daily_rows"] == metadata["tidy_rows"] - 1
        assert metadata["denylist"] == list(config.denylist)
        assert metadata["skipped_partitions"] == []
        assert metadata["run_id"] == results["run_id"]

    @pytest.mark.fail_loud
    def test_prepare_rejects_bad_bundle(self, config):
        bad = build_raw([{}]).drop(columns=["ActivityMediaName"])
        save_bundle(bad, pd.DataFrame({"site": [MAIN]}), config.bundle_path())
        with pytest.raises(ValueError, match="ActivityMediaName"):
            prepare(str(config.bundle_path()), config)


class TestModelTask:
    def test_existing_leaderboard_skips_refit(self, config):
        run_full_pipeline(config, fetcher=FakePortal())

        # annual path is never read when the leaderboard is already there
        info = model("missing/annual.parquet", config)

        assert info["n_fits"] == 2
        assert info["skipped"] == []

    def test_overwrite_refits(self, config):
        run_full_pipeline(config, fetcher=FakePortal())
        cfg = replace(config, overwrite=True)

        with pytest.raises(FileNotFoundError):
            model("missing/annual.parquet", cfg)


class TestCli:
    def test_rank_prints_leaderboard(self, config):
        run_full_pipeline(config, fetcher=FakePortal())

        runner = CliRunner()
        result = runner.invoke(app, ["rank", "--top", "5", "--artifacts-dir", config.artifacts_dir])

        assert result.exit_code == 0, result.output
        assert "Calcium" in result.output

    def test_rank_without_leaderboard_fails(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(app, ["rank", "--artifacts-dir", str(tmp_path / "none")])
        assert result.exit_code == 1

    def test_strip_ipykernel_args(self):
        argv = ["cli.py", "-f", "/tmp/kernel.json", "rank", "--f=/tmp/k.json", "--top", "3"]
        assert _strip_ipykernel_args(argv) == ["cli.py", "rank", "--top", "3"]
