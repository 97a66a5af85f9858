"""MicroRNA binding-site analysis of circRNA target sequences.

The reversed microRNA is slid along each target and compared position by
position. A window is a candidate binding site when the seed (miRNA
positions 2-8) has enough matches and few enough G-U wobble pairs; qualifying
sites are then characterised in the central (9-12) and compensatory (13-16)
regions and by the AU content around the site.

Results are collected per (target, microRNA) pair and exposed as a bundle of
matrices (rows: targets, columns: microRNAs) which can be rearranged into one
table per target.
"""

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterator, NamedTuple, Optional, Union

import pandas as pd

from circprofiler.data.base import SequenceUtils
from circprofiler.data.mirna_manager import (
    FastaMiRNAReference,
    MiRBaseReference,
    MiRNAReference,
    read_mirna_ids,
    select_mirnas,
)
from circprofiler.data.targets import TargetsInput, coerce_targets, targets_to_dataframe
from circprofiler.models.mirna import MicroRNARecord, MiRPairResult, MiRSiteParameters, SiteMatch, TargetSequence
from circprofiler.models.schemas import MicroRNAsSchema, RearrangedMiRSchema
from circprofiler.utils.logging_utils import get_logger

logger = get_logger(__name__)

WATSON_CRICK = "w"
WOBBLE = "n"
MISMATCH = "m"

WATSON_CRICK_PAIRS = frozenset({"AU", "UA", "GC", "CG"})
WOBBLE_PAIRS = frozenset({"GU", "UG"})

BUNDLE_FIELDS = (
    "targets",
    "microRNAs",
    "counts",
    "totMatchesInSeed",
    "cwcMatchesInSeed",
    "seedLocation",
    "t1",
    "totMatchesInCentral",
    "cwcMatchesInCentral",
    "totMatchesInCompensatory",
    "cwcMatchesInCompensatory",
    "localAUcontent",
)
MATRIX_FIELDS = BUNDLE_FIELDS[2:]

MATRIX_DTYPES = {
    "counts": "int64",
    "totMatchesInSeed": "Int64",
    "cwcMatchesInSeed": "object",
    "seedLocation": "Int64",
    "t1": "object",
    "totMatchesInCentral": "Int64",
    "cwcMatchesInCentral": "Int64",
    "totMatchesInCompensatory": "Int64",
    "cwcMatchesInCompensatory": "Int64",
    "localAUcontent": "float64",
}


def compare_sequences(seq1: str, seq2: str, is_gu_match: bool = True) -> str:
    """Classify the pairing of two aligned sequences position by position.

    Args:
        seq1: miRNA-derived sequence
        seq2: target-derived sequence, same length as seq1
        is_gu_match: Report G-U pairs as wobble matches instead of mismatches

    Returns:
        String of the same length: "w" Watson-Crick pair, "n" G-U wobble, "m" mismatch

    Raises:
        ValueError: If the sequences differ in length
    """
    if len(seq1) != len(seq2):
        raise ValueError(f"Sequences must have the same length ({len(seq1)} != {len(seq2)})")

    classes = []
    for base1, base2 in zip(seq1.upper().replace("T", "U"), seq2.upper().replace("T", "U")):
        pair = base1 + base2
        if pair in WATSON_CRICK_PAIRS:
            classes.append(WATSON_CRICK)
        elif is_gu_match and pair in WOBBLE_PAIRS:
            classes.append(WOBBLE)
        else:
            classes.append(MISMATCH)
    return "".join(classes)


def _region_slice(mirna_length: int, first: int, last: int) -> slice:
    """Slice of the reversed miRNA covering 1-based miRNA positions first..last."""
    last = min(last, mirna_length)
    if first > last:
        return slice(0, 0)
    return slice(mirna_length - last, mirna_length - first + 1)


def _local_window(seq: str, start: int, end: int, flank: int, circular: bool) -> str:
    """Sequence around the 0-based inclusive span start..end, extended by flank on both sides."""
    n = len(seq)
    if not circular:
        return seq[max(0, start - flank) : min(n, end + flank + 1)]

    site_length = end - start + 1
    span = min(site_length + 2 * flank, n)
    first = start - (span - site_length) // 2
    return "".join(seq[i % n] for i in range(first, first + span))


def scan_mirna_sites(
    target: TargetSequence,
    mirna: MicroRNARecord,
    parameters: Optional[MiRSiteParameters] = None,
) -> MiRPairResult:
    """Find all qualifying binding sites of one miRNA in one target.

    Sites are reported in increasing target position.
    """
    params = parameters or MiRSiteParameters()
    result = MiRPairResult(target_id=target.id, mirna_id=mirna.id)

    mirna_length = mirna.length
    seq = target.seq
    n = len(seq)
    if mirna_length < params.seed_end or n < mirna_length:
        return result

    reversed_mirna = SequenceUtils.reverse(mirna.seq)
    if params.circular:
        scan_seq = seq + seq[: mirna_length - 1]
        offsets = range(n)
    else:
        scan_seq = seq
        offsets = range(n - mirna_length + 1)

    seed = _region_slice(mirna_length, params.seed_start, params.seed_end)
    central = _region_slice(mirna_length, params.seed_end + 1, params.central_end)
    compensatory = _region_slice(mirna_length, params.central_end + 1, params.compensatory_end)
    mirna_seed = reversed_mirna[seed]
    mirna_central = reversed_mirna[central]
    mirna_compensatory = reversed_mirna[compensatory]

    for offset in offsets:
        window = scan_seq[offset : offset + mirna_length]

        seed_pairs = compare_sequences(mirna_seed, window[seed], params.is_gu_match)
        non_canonical = seed_pairs.count(WOBBLE)
        total = seed_pairs.count(WATSON_CRICK) + non_canonical
        if total < params.total_matches or non_canonical > params.max_non_canonical_matches:
            continue

        central_pairs = compare_sequences(mirna_central, window[central], params.is_gu_match)
        compensatory_pairs = compare_sequences(mirna_compensatory, window[compensatory], params.is_gu_match)

        # seed 5' end is the last character of the reversed comparison
        continuous = len(seed_pairs) - len(seed_pairs.rstrip(WATSON_CRICK))

        site_start = offset + seed.start
        site_end = offset + mirna_length - 1
        local = _local_window(seq, site_start, site_end, params.au_flank, params.circular)

        result.sites.append(
            SiteMatch(
                seed_location=site_start % n + 1,
                tot_matches_in_seed=total,
                cwc_matches_in_seed=continuous,
                non_canonical_in_seed=non_canonical,
                t1=scan_seq[site_end],
                tot_matches_in_central=len(central_pairs) - central_pairs.count(MISMATCH),
                cwc_matches_in_central=central_pairs.count(WATSON_CRICK),
                tot_matches_in_compensatory=len(compensatory_pairs) - compensatory_pairs.count(MISMATCH),
                cwc_matches_in_compensatory=compensatory_pairs.count(WATSON_CRICK),
                local_au_content=round(SequenceUtils.calculate_au_content(local), 1),
            )
        )

    return result


class MiRSitesBundle(Mapping):
    """Aggregated binding-site results.

    A read-only mapping with twelve entries in fixed order: the ``targets`` and
    ``microRNAs`` tables followed by ten matrices indexed by target id (rows)
    and miRNA id (columns). Matrix cells hold the site count of the pair and the
    details of its first site. Entries are also reachable as attributes
    (``bundle.counts``). The per-site records stay available through
    :meth:`pair` and :meth:`iter_pairs`.
    """

    def __init__(
        self,
        targets: Sequence[TargetSequence],
        mirnas: Sequence[MicroRNARecord],
        results: Sequence[Sequence[MiRPairResult]],
        metadata: Optional[dict[str, Any]] = None,
    ):
        if len(results) != len(targets) or any(len(row) != len(mirnas) for row in results):
            raise ValueError("Result grid does not match the number of targets and miRNAs")

        self.target_records = list(targets)
        self.mirna_records = list(mirnas)
        self.results = [list(row) for row in results]
        self.metadata = dict(metadata or {})
        self._tables = self._build_tables()

    def _build_tables(self) -> dict[str, pd.DataFrame]:
        tables: dict[str, pd.DataFrame] = {
            "targets": targets_to_dataframe(self.target_records),
            "microRNAs": mirnas_to_dataframe(self.mirna_records),
        }

        index = pd.Index([target.id for target in self.target_records], name="id")
        columns = pd.Index([mirna.id for mirna in self.mirna_records], name="miRid")
        cells = [[pair.legacy_values() for pair in row] for row in self.results]

        for field in MATRIX_FIELDS:
            data = [[cell[field] for cell in row] for row in cells]
            matrix = pd.DataFrame(data, index=index, columns=columns, dtype="object")
            tables[field] = matrix.astype(MATRIX_DTYPES[field])

        return tables

    def __getitem__(self, key: str) -> pd.DataFrame:
        return self._tables[key]

    def __iter__(self) -> Iterator[str]:
        return iter(BUNDLE_FIELDS)

    def __len__(self) -> int:
        return len(BUNDLE_FIELDS)

    def __getattr__(self, name: str) -> pd.DataFrame:
        tables = self.__dict__.get("_tables")
        if tables is not None and name in tables:
            return tables[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __repr__(self) -> str:
        return f"MiRSitesBundle(targets={len(self.target_records)}, microRNAs={len(self.mirna_records)})"

    def matrix(self, field: str) -> pd.DataFrame:
        """Return one of the ten result matrices."""
        if field not in MATRIX_FIELDS:
            raise ValueError(f"Unknown result matrix '{field}'. Expected one of: {', '.join(MATRIX_FIELDS)}")
        return self._tables[field]

    def pair(self, target_index: int, mirna_index: int) -> MiRPairResult:
        """All sites of one (target, miRNA) pair, by position in the bundle."""
        return self.results[target_index][mirna_index]

    def iter_pairs(self) -> Iterator[MiRPairResult]:
        """Iterate over all pair results, target by target."""
        for row in self.results:
            yield from row

    def total_sites(self) -> int:
        """Number of qualifying sites over all pairs."""
        return sum(pair.count for pair in self.iter_pairs())


def mirnas_to_dataframe(mirnas: Sequence[MicroRNARecord]) -> pd.DataFrame:
    """MicroRNAs table (``id``, ``length``, ``seq``, ``seqRev``), validated."""
    rows = [mirna.to_row() for mirna in mirnas]
    df = pd.DataFrame(
        {
            "id": pd.Series([row["id"] for row in rows], dtype=str),
            "length": pd.Series([row["length"] for row in rows], dtype="int64"),
            "seq": pd.Series([row["seq"] for row in rows], dtype=str),
            "seqRev": pd.Series([row["seqRev"] for row in rows], dtype=str),
        }
    )
    return MicroRNAsSchema.validate(df)


def _scan_target(
    target: TargetSequence, mirnas: Sequence[MicroRNARecord], parameters: MiRSiteParameters
) -> list[MiRPairResult]:
    return [scan_mirna_sites(target, mirna, parameters) for mirna in mirnas]


def score_targets(
    targets: Sequence[TargetSequence],
    mirnas: Sequence[MicroRNARecord],
    parameters: Optional[MiRSiteParameters] = None,
    num_threads: int = 1,
    metadata: Optional[dict[str, Any]] = None,
) -> MiRSitesBundle:
    """Score every (target, miRNA) pair and aggregate the results into a bundle."""
    params = parameters or MiRSiteParameters()

    if num_threads > 1 and len(targets) > 1:
        with ThreadPoolExecutor(max_workers=num_threads) as executor:
            results = list(executor.map(lambda target: _scan_target(target, mirnas, params), targets))
    else:
        results = [_scan_target(target, mirnas, params) for target in targets]

    bundle = MiRSitesBundle(targets, mirnas, results, metadata=metadata)
    logger.info(
        f"Found {bundle.total_sites()} binding sites for {len(mirnas)} miRNAs in {len(targets)} targets"
    )
    return bundle


def get_mir_sites(
    targets: TargetsInput,
    species: str = "Hsapiens",
    genome: str = "hg19",
    mir_species_code: str = "hsa",
    mirbase_latest_release: bool = True,
    total_matches: int = 7,
    max_non_canonical_matches: int = 1,
    mir_ids: Optional[Sequence[str]] = None,
    path_to_mirs: Optional[Union[str, Path]] = None,
    path_to_mature: Union[str, Path] = "mature.fa",
    reference: Optional[MiRNAReference] = None,
    parameters: Optional[MiRSiteParameters] = None,
    num_threads: int = 1,
) -> MiRSitesBundle:
    """Screen target sequences for microRNA binding sites.

    Args:
        targets: Target sequences (TargetSequence objects or a data frame with id/seq)
        species: Species of the targets, recorded in the bundle metadata
        genome: Genome assembly the targets were extracted from, recorded in the bundle metadata
        mir_species_code: miRBase species code used to filter the reference (e.g. "hsa")
        mirbase_latest_release: Download the latest miRBase release instead of reading path_to_mature
        total_matches: Minimum matches (Watson-Crick + wobble) in the seed
        max_non_canonical_matches: Maximum G-U wobble pairs in the seed
        mir_ids: Optional miRNA id allowlist
        path_to_mirs: Optional miRs.txt allowlist file, used when mir_ids is not given
        path_to_mature: Local mature miRNA FASTA used when mirbase_latest_release is False
        reference: Explicit reference provider, takes precedence over the two options above
        parameters: Full scoring parameters; when given, total_matches and
            max_non_canonical_matches are ignored
        num_threads: Number of worker threads across targets

    Returns:
        MiRSitesBundle with one row per target and one column per miRNA
    """
    params = parameters or MiRSiteParameters(
        total_matches=total_matches,
        max_non_canonical_matches=max_non_canonical_matches,
    )
    target_list = coerce_targets(targets)

    if reference is None:
        reference = MiRBaseReference() if mirbase_latest_release else FastaMiRNAReference(path_to_mature)

    if mir_ids is None and path_to_mirs is not None:
        mir_ids = read_mirna_ids(path_to_mirs)

    mirnas = select_mirnas(reference, mir_species_code, mir_ids)
    logger.info(f"Screening {len(target_list)} targets ({species}, {genome}) with {len(mirnas)} miRNAs")

    metadata = {
        "species": species,
        "genome": genome,
        "mir_species_code": mir_species_code,
        "parameters": params.model_dump(),
    }
    return score_targets(target_list, mirnas, params, num_threads=num_threads, metadata=metadata)


class RearrangedMiRResult(NamedTuple):
    """Results of one target: its record and one row per miRNA."""

    target: TargetSequence
    mirnas: pd.DataFrame


def rearrange_mir_results(bundle: Mapping[str, pd.DataFrame]) -> list[RearrangedMiRResult]:
    """Transpose a result bundle into one (target, miRNA table) entry per target.

    For target i and miRNA j, every value of the miRNA table equals the bundle
    matrix value at [i, j]; miRNA order follows the matrix columns.
    """
    targets = bundle["targets"]
    counts = bundle["counts"]
    mir_ids = [str(column) for column in counts.columns]

    rearranged = []
    for i, row in enumerate(targets.itertuples(index=False)):
        target = TargetSequence(id=row.id, seq=row.seq, length=int(row.length))

        table = pd.DataFrame({"miRid": pd.Series(mir_ids, dtype=str)})
        for field in MATRIX_FIELDS:
            values = bundle[field].iloc[i].reset_index(drop=True)
            table[field] = values.astype(MATRIX_DTYPES[field])

        rearranged.append(RearrangedMiRResult(target, RearrangedMiRSchema.validate(table)))

    return rearranged


def top_mirnas(rearranged: Sequence[RearrangedMiRResult], n: int = 40, index: int = 0) -> pd.DataFrame:
    """Per-miRNA site counts of one target, most frequent first.

    Args:
        rearranged: Output of rearrange_mir_results
        n: Site-count cut-off; miRNAs with at least n sites are flagged as top
        index: Position of the target in rearranged

    Returns:
        Data frame with ``miRid``, ``label`` (id without marker), ``counts`` and ``top``
    """
    table = rearranged[index].mirnas[["miRid", "counts"]].dropna(subset=["counts"])
    table = table.sort_values("counts", ascending=False, kind="stable").reset_index(drop=True)
    table.insert(1, "label", table["miRid"].str.lstrip(">"))
    table["top"] = table["counts"] >= n
    return table
