"""Tests for typology recodes."""

import numpy as np
import pandas as pd
import pytest

from typology.config import FieldMap
from typology.recodes import (
    FHT5,
    HH_EUROSTAT,
    INDICATORS,
    VARIABLES,
    Category,
    CategoricalVariable,
    recode,
    recode_variables,
)


@pytest.fixture
def normalized():
    """Normalized microdata covering every raw code."""
    n = 14
    return pd.DataFrame({
        "rb020": ["AT"] * n,
        "rb050": np.ones(n),
        "hx060": list(range(1, 15)),
        "hhtyp": list(range(1, 15)),
        "fht": list(range(1, 13)) + [np.nan, 99],
        "hx080": [0, 1] * 7,
        "sev_dep": [1, 0] * 7,
    })


class TestHouseholdTypology:
    """Tests for the Eurostat household typology recode."""

    def test_bucketing(self):
        """Raw household codes map to the five Eurostat categories."""
        raw = pd.Series([5, 6, 7, 9, 10, 11, 12])
        assert recode(raw, HH_EUROSTAT).tolist() == [1, 2, 2, 3, 4, 4, 4]

    def test_unmapped_codes_go_to_other(self):
        """Codes outside the table fall into the catch-all category."""
        raw = pd.Series([1, 8, 13, 99, -1])
        assert recode(raw, HH_EUROSTAT).tolist() == [5, 5, 5, 5, 5]

    def test_missing_codes_go_to_other(self):
        """Missing values are routed to the catch-all, not left empty."""
        raw = pd.Series([5, np.nan, None])
        assert recode(raw, HH_EUROSTAT).tolist() == [1, 5, 5]

    def test_string_codes(self):
        """Numeric codes stored as strings are recoded like numbers."""
        raw = pd.Series(["5", "10", "x"])
        assert recode(raw, HH_EUROSTAT).tolist() == [1, 4, 5]

    def test_output_name(self):
        """The recoded series is named after the variable."""
        assert recode(pd.Series([5]), HH_EUROSTAT).name == "hh_eurostat"


class TestFamilyTypology:
    """Tests for the simplified FHT recode."""

    def test_bucketing(self):
        """All twelve FHT codes map as declared."""
        raw = pd.Series(range(1, 13))
        expected = [1, 2, 3, 3, 4, 4, 3, 3, 4, 4, 2, 5]
        assert recode(raw, FHT5).tolist() == expected

    def test_unmapped_codes_go_to_other(self):
        """Codes outside 1-12 fall into category 5."""
        assert recode(pd.Series([0, 13, np.nan]), FHT5).tolist() == [5, 5, 5]

    def test_separate_from_household_typology(self):
        """Labels match by name but the variables stay distinct."""
        assert FHT5.labels == HH_EUROSTAT.labels
        assert FHT5 != HH_EUROSTAT
        assert FHT5.source != HH_EUROSTAT.source

    def test_code_for_single_value(self):
        """code_for agrees with the vectorized recode."""
        assert FHT5.code_for(11) == 2
        assert FHT5.code_for("7") == 3
        assert FHT5.code_for(None) == 5
        assert FHT5.code_for(2.5) == 5


class TestCategoricalVariable:
    """Tests for the declarative variable table."""

    def test_labels_in_code_order(self):
        """Labels follow category code order."""
        assert HH_EUROSTAT.codes == [1, 2, 3, 4, 5]
        assert HH_EUROSTAT.labels[0] == "Single person"
        assert HH_EUROSTAT.labels[-1] == "Other"

    def test_rejects_duplicate_raw_code(self):
        """A raw code cannot map to two categories."""
        with pytest.raises(ValueError, match="mapped twice"):
            CategoricalVariable(
                name="bad",
                source="fht",
                categories=(Category(1, "A", (1,)), Category(2, "B", (1,))),
                catch_all=2,
            )

    def test_rejects_unknown_catch_all(self):
        """The catch-all must be one of the categories."""
        with pytest.raises(ValueError, match="catch-all"):
            CategoricalVariable(
                name="bad",
                source="fht",
                categories=(Category(1, "A", (1,)),),
                catch_all=9,
            )

    def test_registry(self):
        """Both variables are registered by name."""
        assert set(VARIABLES) == {"hh_eurostat", "fht5"}


class TestRecodeVariables:
    """Tests for appending recoded columns to microdata."""

    def test_adds_all_columns(self, normalized):
        """Recoded variables and pass-through indicators are appended."""
        result = recode_variables(normalized, FieldMap())
        for col in ["hh_eurostat", "fht5", *INDICATORS]:
            assert col in result.columns

    def test_total_over_records(self, normalized):
        """Every record gets a category in 1..5 for both variables."""
        result = recode_variables(normalized, FieldMap())
        for name in VARIABLES:
            assert result[name].notna().all()
            assert result[name].between(1, 5).all()

    def test_indicators_copied(self, normalized):
        """Poverty and deprivation flags pass through unchanged."""
        result = recode_variables(normalized, FieldMap())
        assert result["arop"].tolist() == normalized["hx080"].tolist()
        assert result["smsd"].tolist() == normalized["sev_dep"].tolist()

    def test_does_not_mutate_input(self, normalized):
        """The input DataFrame is left untouched."""
        before = normalized.copy()
        recode_variables(normalized, FieldMap())
        pd.testing.assert_frame_equal(normalized, before)

    def test_idempotent(self, normalized):
        """Recoding an already recoded frame changes nothing."""
        once = recode_variables(normalized, FieldMap())
        twice = recode_variables(once, FieldMap())
        pd.testing.assert_frame_equal(once, twice)

    def test_independent_of_record_order(self, normalized):
        """Each record's category depends only on its own raw code."""
        shuffled = normalized.sample(frac=1, random_state=0)
        a = recode_variables(normalized, FieldMap())
        b = recode_variables(shuffled, FieldMap()).loc[a.index]
        pd.testing.assert_frame_equal(a, b)
