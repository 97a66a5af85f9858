"""Tests for the pandera table schemas."""

import pandas as pd
import pytest
from pandera.errors import SchemaError

from circprofiler.models.schemas import MicroRNAsSchema, RearrangedMiRSchema, TargetsSchema


class TestTargetsSchema:
    """Test the targets table schema."""

    def test_valid_data_passes_validation(self):
        df = pd.DataFrame({"id": ["c1", "c2"], "length": [4, 6], "seq": ["ACGU", "AAUUGC"]})
        result = TargetsSchema.validate(df)
        assert list(result.columns) == ["id", "length", "seq"]

    def test_length_mismatch_fails(self):
        df = pd.DataFrame({"id": ["c1"], "length": [5], "seq": ["ACGU"]})
        with pytest.raises(SchemaError):
            TargetsSchema.validate(df)

    def test_dna_alphabet_fails(self):
        df = pd.DataFrame({"id": ["c1"], "length": [4], "seq": ["ACGT"]})
        with pytest.raises(SchemaError):
            TargetsSchema.validate(df)

    def test_extra_column_fails(self):
        df = pd.DataFrame({"id": ["c1"], "length": [4], "seq": ["ACGU"], "strand": ["+"]})
        with pytest.raises(SchemaError):
            TargetsSchema.validate(df)

    def test_column_order_enforced(self):
        df = pd.DataFrame({"id": ["c1"], "seq": ["ACGU"], "length": [4]})
        with pytest.raises(SchemaError):
            TargetsSchema.validate(df)

    def test_length_is_coerced(self):
        df = pd.DataFrame({"id": ["c1"], "length": ["4"], "seq": ["ACGU"]})
        result = TargetsSchema.validate(df)
        assert result["length"].tolist() == [4]
        assert str(result["length"].dtype) == "int64"

    def test_empty_table_passes_validation(self):
        df = pd.DataFrame({"id": [], "length": [], "seq": []})
        assert TargetsSchema.validate(df).empty


class TestMicroRNAsSchema:
    """Test the microRNAs table schema."""

    def _table(self, **overrides):
        data = {
            "id": [">hsa-miR-16-5p"],
            "length": [22],
            "seq": ["UAGCAGCACGUAAAUAUUGGCG"],
            "seqRev": ["CGCCAAUAUUUACGUGCUGCUA"],
        }
        data.update(overrides)
        return pd.DataFrame(data)

    def test_valid_data_passes_validation(self):
        assert MicroRNAsSchema.validate(self._table()).shape == (1, 4)

    def test_plain_reverse_is_rejected(self):
        with pytest.raises(SchemaError):
            MicroRNAsSchema.validate(self._table(seqRev=["GCGGUUAUAAAUGCACGACGAU"]))

    def test_missing_marker_fails(self):
        with pytest.raises(SchemaError):
            MicroRNAsSchema.validate(self._table(id=["hsa-miR-16-5p"]))

    def test_extra_column_fails(self):
        with pytest.raises(SchemaError):
            MicroRNAsSchema.validate(self._table(family=["mir-15"]))


class TestRearrangedMiRSchema:
    """Test the per-target miRNA table schema."""

    def _table(self, counts, seed_location, seed_type):
        return pd.DataFrame(
            {
                "miRid": [">a", ">b"],
                "counts": pd.Series(counts, dtype="int64"),
                "totMatchesInSeed": pd.Series([7, None], dtype="Int64"),
                "cwcMatchesInSeed": pd.Series(seed_type, dtype="object"),
                "seedLocation": pd.Series(seed_location, dtype="Int64"),
                "t1": pd.Series(["A", None], dtype="object"),
                "totMatchesInCentral": pd.Series([4, None], dtype="Int64"),
                "cwcMatchesInCentral": pd.Series([4, None], dtype="Int64"),
                "totMatchesInCompensatory": pd.Series([3, None], dtype="Int64"),
                "cwcMatchesInCompensatory": pd.Series([2, None], dtype="Int64"),
                "localAUcontent": pd.Series([0.3, None], dtype="float64"),
            }
        )

    def test_valid_data_passes_validation(self):
        table = self._table([2, 0], [15, None], ["7mer", None])
        assert RearrangedMiRSchema.validate(table).shape == (2, 11)

    def test_location_without_sites_fails(self):
        with pytest.raises(SchemaError):
            RearrangedMiRSchema.validate(self._table([0, 0], [15, None], ["7mer", None]))

    def test_bad_seed_type_fails(self):
        with pytest.raises(SchemaError):
            RearrangedMiRSchema.validate(self._table([1, 0], [15, None], ["seven", None]))

    def test_extra_column_fails(self):
        table = self._table([1, 0], [15, None], ["7mer", None])
        table["label"] = ["a", "b"]
        with pytest.raises(SchemaError):
            RearrangedMiRSchema.validate(table)
