"""
Cleaner + Unit Harmonizer Tests

- Projection onto canonical columns, unit trimming, Water-only
- tons/day dropped, dates parsed, synonyms collapsed
- Unparseable dates dropped with a warning (not silently)
- Non-numeric values kept as explicit NaN
"""

import logging

import numpy as np
import pandas as pd
import pytest

from colorado_wq.cleaning import clean_observations, harmonize_units
from colorado_wq.schema import CLEAN_COLUMNS, TIDY_COLUMNS


class TestCleanObservations:
    """Projection, trimming and medium filter"""

    def test_projects_canonical_columns(self, make_raw):
        clean = clean_observations(make_raw([{}]))
        assert list(clean.columns) == CLEAN_COLUMNS + ["pcode"]

    def test_without_pcode(self, make_raw):
        raw = make_raw([{}]).drop(columns=["pcode"])
        clean = clean_observations(raw)
        assert list(clean.columns) == CLEAN_COLUMNS

    def test_trims_units(self, make_raw):
        raw = make_raw([
            {"ResultMeasure/MeasureUnitCode": " mg/l "},
            {"ResultMeasure/MeasureUnitCode": "tons/day  "},
        ])
        clean = clean_observations(raw)
        assert clean["units"].tolist() == ["mg/l", "tons/day"]

    def test_keeps_only_water(self, make_raw):
        raw = make_raw([
            {"ActivityMediaName": "Water"},
            {"ActivityMediaName": "Sediment"},
            {"ActivityMediaName": "Water"},
        ])
        clean = clean_observations(raw)
        assert len(clean) == 2
        assert (clean["media"] == "Water").all()

    def test_does_not_mutate_input(self, make_raw):
        raw = make_raw([{"ResultMeasure/MeasureUnitCode": " mg/l "}])
        before = raw.copy()
        clean_observations(raw)
        pd.testing.assert_frame_equal(raw, before)

    def test_malformed_values_pass_through(self, make_raw):
        raw = make_raw([{"ResultMeasureValue": "not a number"}])
        clean = clean_observations(raw)
        assert clean.loc[0, "value"] == "not a number"

    @pytest.mark.fail_loud
    def test_missing_provider_column_raises(self, make_raw):
        raw = make_raw([{}]).drop(columns=["ResultStatusIdentifier"])
        with pytest.raises(ValueError, match="ResultStatusIdentifier"):
            clean_observations(raw)


class TestHarmonizeUnits:
    """Unit drop, date parse, tidy reduction"""

    def test_output_columns(self, make_raw):
        tidy = harmonize_units(clean_observations(make_raw([{}])))
        assert list(tidy.columns) == TIDY_COLUMNS

    def test_drops_tons_per_day(self, make_raw):
        raw = make_raw([
            {"ResultMeasure/MeasureUnitCode": "mg/l", "ResultMeasureValue": "10"},
            {"ResultMeasure/MeasureUnitCode": "tons/day", "ResultMeasureValue": "900"},
            {"ResultMeasure/MeasureUnitCode": " tons/day", "ResultMeasureValue": "901"},
        ])
        tidy = harmonize_units(clean_observations(raw))
        assert tidy["conc"].tolist() == [10.0]

    def test_custom_incompatible_units(self, make_raw):
        raw = make_raw([
            {"ResultMeasure/MeasureUnitCode": "mg/l"},
            {"ResultMeasure/MeasureUnitCode": "ueq/L"},
        ])
        tidy = harmonize_units(clean_observations(raw), incompatible_units=["ueq/L"])
        assert len(tidy) == 1

    def test_parses_dates(self, make_raw):
        tidy = harmonize_units(clean_observations(make_raw([{"ActivityStartDate": "1999-02-28"}])))
        assert pd.api.types.is_datetime64_any_dtype(tidy["date"])
        assert tidy.loc[0, "date"] == pd.Timestamp("1999-02-28")

    def test_unparseable_dates_dropped_with_warning(self, make_raw, caplog):
        raw = make_raw([
            {"ActivityStartDate": "2020-06-01"},
            {"ActivityStartDate": "06/01/2020"},
            {"ActivityStartDate": None},
        ])
        with caplog.at_level(logging.WARNING, logger="colorado_wq.cleaning"):
            tidy = harmonize_units(clean_observations(raw))

        assert len(tidy) == 1
        assert "unparseable date" in caplog.text

    def test_synonyms_collapse_to_canonical_name(self, make_raw):
        raw = make_raw([
            {"CharacteristicName": "Sulfate as SO4", "pcode": "so4"},
            {"CharacteristicName": "Total Sulfate", "pcode": "so4"},
            {"CharacteristicName": "Alkalinity, bicarbonate", "pcode": "hco3"},
        ])
        tidy = harmonize_units(clean_observations(raw))
        assert tidy["parameter"].tolist() == ["Sulfate", "Sulfate", "Bicarbonate"]

    def test_untagged_rows_keep_characteristic(self, make_raw):
        raw = make_raw([{"CharacteristicName": "Calcium"}]).drop(columns=["pcode"])
        tidy = harmonize_units(clean_observations(raw))
        assert tidy.loc[0, "parameter"] == "Calcium"

    def test_non_numeric_becomes_explicit_nan(self, make_raw):
        raw = make_raw([
            {"ResultMeasureValue": "12.5"},
            {"ResultMeasureValue": "<0.5"},
            {"ResultMeasureValue": None},
        ])
        tidy = harmonize_units(clean_observations(raw))

        assert len(tidy) == 3
        assert pd.api.types.is_numeric_dtype(tidy["conc"])
        assert tidy.loc[0, "conc"] == 12.5
        assert np.isnan(tidy.loc[1, "conc"])
        assert np.isnan(tidy.loc[2, "conc"])

    @pytest.mark.fail_loud
    def test_requires_clean_columns(self, make_raw):
        with pytest.raises(ValueError, match="clean observations"):
            harmonize_units(make_raw([{}]))
