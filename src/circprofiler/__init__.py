"""circprofiler: downstream analysis of circular RNA back-spliced junctions.

The package screens circRNA sequences for microRNA binding sites and
summarises the results per target.
"""

__version__ = "0.1.0"

from circprofiler.core.mirna_sites import (
    MiRSitesBundle,
    RearrangedMiRResult,
    compare_sequences,
    get_mir_sites,
    rearrange_mir_results,
    scan_mirna_sites,
    score_targets,
    top_mirnas,
)
from circprofiler.models.mirna import MicroRNARecord, MiRPairResult, MiRSiteParameters, SiteMatch, TargetSequence

__all__ = [
    "MiRPairResult",
    "MiRSiteParameters",
    "MiRSitesBundle",
    "MicroRNARecord",
    "RearrangedMiRResult",
    "SiteMatch",
    "TargetSequence",
    "__version__",
    "compare_sequences",
    "get_mir_sites",
    "rearrange_mir_results",
    "scan_mirna_sites",
    "score_targets",
    "top_mirnas",
]
