"""Pydantic models for microRNA binding-site analysis."""

from functools import cached_property
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, computed_field, field_validator, model_validator

from circprofiler.data.base import SequenceUtils

# mypy-friendly typed alias for pydantic's untyped decorator factory
F = TypeVar("F", bound=Callable[..., Any])
FieldValidatorFactory = Callable[..., Callable[[F], F]]
field_validator_typed: FieldValidatorFactory = field_validator


class TargetSequence(BaseModel):
    """Target (circRNA) sequence supplied by the annotation layer."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Target identifier")
    seq: str = Field(description="Target sequence (RNA alphabet)")
    length: int = Field(ge=0, description="Sequence length in nucleotides")

    @model_validator(mode="before")
    @classmethod
    def fill_length(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("length") is None and isinstance(data.get("seq"), str):
            data = {**data, "length": len(data["seq"].strip())}
        return data

    @field_validator_typed("seq")
    @classmethod
    def validate_sequence(cls, v: str) -> str:
        rna = SequenceUtils.to_rna(v)
        if not SequenceUtils.is_valid_rna(rna):
            raise ValueError(f"Target sequence contains invalid nucleotides: {v[:30]}")
        return rna

    @model_validator(mode="after")
    def check_length(self) -> "TargetSequence":
        if self.length != len(self.seq):
            raise ValueError(f"Target {self.id}: length {self.length} does not match sequence length {len(self.seq)}")
        return self


class MicroRNARecord(BaseModel):
    """Mature microRNA with its cached reverse complement."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="miRNA identifier, marker-prefixed (e.g. >hsa-miR-1-3p)")
    seq: str = Field(min_length=1, description="Mature sequence, 5' to 3'")

    @field_validator_typed("id")
    @classmethod
    def add_marker(cls, v: str) -> str:
        v = v.strip()
        if not v.lstrip(">"):
            raise ValueError("miRNA id must not be empty")
        return v if v.startswith(">") else f">{v}"

    @field_validator_typed("seq")
    @classmethod
    def validate_sequence(cls, v: str) -> str:
        rna = SequenceUtils.to_rna(v)
        if not SequenceUtils.is_valid_rna(rna):
            raise ValueError(f"miRNA sequence contains invalid nucleotides: {v}")
        return rna

    @computed_field  # type: ignore[prop-decorator]
    @property
    def length(self) -> int:
        return len(self.seq)

    @computed_field  # type: ignore[prop-decorator]
    @cached_property
    def seq_rev(self) -> str:
        return SequenceUtils.reverse_complement(self.seq)

    def to_row(self) -> dict[str, Any]:
        """Row of the microRNAs table."""
        return {"id": self.id, "length": self.length, "seq": self.seq, "seqRev": self.seq_rev}


class MiRSiteParameters(BaseModel):
    """Parameters controlling seed matching and site characterisation."""

    model_config = ConfigDict(extra="forbid")

    total_matches: int = Field(default=7, ge=0, description="Minimum matches (Watson-Crick + wobble) in the seed")
    max_non_canonical_matches: int = Field(default=1, ge=0, description="Maximum G-U wobble pairs in the seed")
    is_gu_match: bool = Field(default=True, description="Count G-U wobble pairs as matches")

    # miRNA regions, 1-based inclusive positions from the 5' end
    seed_start: int = Field(default=2, ge=1, description="First miRNA position of the seed")
    seed_end: int = Field(default=8, ge=1, description="Last miRNA position of the seed")
    central_end: int = Field(default=12, ge=1, description="Last miRNA position of the central region")
    compensatory_end: int = Field(default=16, ge=1, description="Last miRNA position of the compensatory region")

    au_flank: int = Field(default=30, ge=0, description="Nucleotides on each side of the site used for AU content")
    circular: bool = Field(default=False, description="Scan across the back-spliced junction")

    @field_validator_typed("seed_end")
    @classmethod
    def seed_end_after_start(cls, v: int, info: ValidationInfo) -> int:
        if "seed_start" in info.data and v < info.data["seed_start"]:
            raise ValueError("seed_end must be greater than or equal to seed_start")
        return v

    @model_validator(mode="after")
    def regions_in_order(self) -> "MiRSiteParameters":
        if not self.seed_end <= self.central_end <= self.compensatory_end:
            raise ValueError("regions must satisfy seed_end <= central_end <= compensatory_end")
        return self

    @property
    def seed_length(self) -> int:
        return self.seed_end - self.seed_start + 1


class SiteMatch(BaseModel):
    """One qualifying binding site of a miRNA in a target."""

    model_config = ConfigDict(frozen=True)

    seed_location: int = Field(ge=1, description="1-based target position where the seed match starts")
    tot_matches_in_seed: int = Field(ge=0)
    cwc_matches_in_seed: int = Field(ge=0, description="Continuous Watson-Crick pairs from the seed 5' end")
    non_canonical_in_seed: int = Field(ge=0)
    t1: str = Field(description="Target nucleotide facing miRNA position 1")
    tot_matches_in_central: int = Field(ge=0)
    cwc_matches_in_central: int = Field(ge=0)
    tot_matches_in_compensatory: int = Field(ge=0)
    cwc_matches_in_compensatory: int = Field(ge=0)
    local_au_content: float = Field(ge=0, le=1)

    @property
    def seed_type(self) -> str:
        return f"{self.cwc_matches_in_seed}mer"


class MiRPairResult(BaseModel):
    """All qualifying sites of one miRNA in one target."""

    target_id: str
    mirna_id: str
    sites: list[SiteMatch] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.sites)

    @property
    def first_site(self) -> Optional[SiteMatch]:
        return self.sites[0] if self.sites else None

    def legacy_values(self) -> dict[str, Any]:
        """Matrix cell values of this pair keyed by matrix name."""
        site = self.first_site
        if site is None:
            return {
                "counts": 0,
                "totMatchesInSeed": None,
                "cwcMatchesInSeed": None,
                "seedLocation": None,
                "t1": None,
                "totMatchesInCentral": None,
                "cwcMatchesInCentral": None,
                "totMatchesInCompensatory": None,
                "cwcMatchesInCompensatory": None,
                "localAUcontent": None,
            }
        return {
            "counts": self.count,
            "totMatchesInSeed": site.tot_matches_in_seed,
            "cwcMatchesInSeed": site.seed_type,
            "seedLocation": site.seed_location,
            "t1": site.t1,
            "totMatchesInCentral": site.tot_matches_in_central,
            "cwcMatchesInCentral": site.cwc_matches_in_central,
            "totMatchesInCompensatory": site.tot_matches_in_compensatory,
            "cwcMatchesInCompensatory": site.cwc_matches_in_compensatory,
            "localAUcontent": site.local_au_content,
        }
