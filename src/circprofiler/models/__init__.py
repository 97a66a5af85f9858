"""Pydantic models and pandera schemas for microRNA binding-site analysis."""

from .mirna import (
    MicroRNARecord,
    MiRPairResult,
    MiRSiteParameters,
    SiteMatch,
    TargetSequence,
)
from .schemas import MicroRNAsSchema, RearrangedMiRSchema, TargetsSchema

__all__ = [
    # Domain models
    "MicroRNARecord",
    "MiRPairResult",
    "MiRSiteParameters",
    "SiteMatch",
    "TargetSequence",
    # Table schemas
    "MicroRNAsSchema",
    "RearrangedMiRSchema",
    "TargetsSchema",
]
