"""Pandera schemas for circprofiler data validation.

This module defines pandera schemas for the table-like artifacts of the
microRNA binding-site analysis: the targets table, the microRNAs table and
the per-target table produced when rearranging the result bundle.

Use schemas: MySchema.validate(df) - validation errors provide detailed feedback.
"""

import re
from typing import Any, Callable, TypeVar, cast

import pandas as pd
import pandera.pandas as pa
from pandera.pandas import DataFrameModel, Field
from pandera.typing.pandas import Series

from circprofiler.data.base import SequenceUtils

# Typed alias for pandera's dataframe_check decorator to satisfy mypy
F = TypeVar("F", bound=Callable[..., Any])
dataframe_check_typed = cast(Callable[[F], F], pa.dataframe_check)

SEED_TYPE_PATTERN = re.compile(r"^\d+mer$")


def valid_rna_sequence(sequence: str) -> bool:
    """Validate RNA sequence contains only valid RNA bases (N allowed)."""
    return bool(re.match(r"^[AUCGN]*$", sequence)) if isinstance(sequence, str) else False


class TargetsSchema(DataFrameModel):
    """Schema for the targets table (one row per target sequence)."""

    class Config:
        """Schema configuration."""

        description = "Target sequences"
        title = "Targets"
        coerce = True
        strict = True
        ordered = True

    id: Series[str] = Field(description="Target identifier")
    length: Series[int] = Field(ge=0, description="Sequence length")
    seq: Series[str] = Field(description="Target sequence")

    @dataframe_check_typed
    def check_lengths(cls, df: pd.DataFrame) -> bool:
        """Length column must agree with the sequence."""
        return bool((df["seq"].str.len() == df["length"]).all())

    @dataframe_check_typed
    def check_sequences(cls, df: pd.DataFrame) -> bool:
        """Sequences use the RNA alphabet."""
        return bool(df["seq"].map(valid_rna_sequence).all())


class MicroRNAsSchema(DataFrameModel):
    """Schema for the microRNAs table (one row per reference microRNA)."""

    class Config:
        """Schema configuration."""

        description = "Reference microRNAs"
        title = "MicroRNAs"
        coerce = True
        strict = True
        ordered = True

    id: Series[str] = Field(str_startswith=">", description="Marker-prefixed miRNA identifier")
    length: Series[int] = Field(ge=1, description="Mature sequence length")
    seq: Series[str] = Field(description="Mature sequence 5' to 3'")
    seqRev: Series[str] = Field(description="Reverse complement of seq")

    @dataframe_check_typed
    def check_reverse_complement(cls, df: pd.DataFrame) -> bool:
        """seqRev is the reverse complement of seq."""
        return bool((df["seq"].map(SequenceUtils.reverse_complement) == df["seqRev"]).all())

    @dataframe_check_typed
    def check_lengths(cls, df: pd.DataFrame) -> bool:
        """Length column must agree with the sequence."""
        return bool((df["seq"].str.len() == df["length"]).all())


class RearrangedMiRSchema(DataFrameModel):
    """Schema for the per-target microRNA table of a rearranged result."""

    class Config:
        """Schema configuration; detail columns are empty for pairs without sites."""

        description = "Per-target microRNA binding-site summary"
        title = "Rearranged miRNA results"
        coerce = False
        strict = True
        ordered = True

    miRid: Series[str] = Field(description="miRNA identifier")
    counts: Series[int] = Field(ge=0, description="Number of qualifying sites")
    totMatchesInSeed: Series[Any] = Field(nullable=True)
    cwcMatchesInSeed: Series[Any] = Field(nullable=True)
    seedLocation: Series[Any] = Field(nullable=True)
    t1: Series[Any] = Field(nullable=True)
    totMatchesInCentral: Series[Any] = Field(nullable=True)
    cwcMatchesInCentral: Series[Any] = Field(nullable=True)
    totMatchesInCompensatory: Series[Any] = Field(nullable=True)
    cwcMatchesInCompensatory: Series[Any] = Field(nullable=True)
    localAUcontent: Series[Any] = Field(nullable=True)

    @dataframe_check_typed
    def check_seed_types(cls, df: pd.DataFrame) -> bool:
        """Seed types are written as <N>mer."""
        values = df["cwcMatchesInSeed"].dropna()
        return bool(values.map(lambda v: bool(SEED_TYPE_PATTERN.match(str(v)))).all())

    @dataframe_check_typed
    def check_details_follow_counts(cls, df: pd.DataFrame) -> bool:
        """Pairs with sites carry a seed location, pairs without sites do not."""
        has_sites = df["counts"] > 0
        has_location = df["seedLocation"].notna()
        return bool((has_sites == has_location).all())
