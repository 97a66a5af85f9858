"""Target sequence loading.

Targets are circRNA sequences already extracted from genomic coordinates by
an annotation layer; here they are only read and normalised.
"""

from collections.abc import Iterable
from pathlib import Path
from typing import Union

import pandas as pd
from Bio import SeqIO

from circprofiler.models.mirna import TargetSequence
from circprofiler.models.schemas import TargetsSchema
from circprofiler.utils.logging_utils import get_logger

logger = get_logger(__name__)

TargetsInput = Union[pd.DataFrame, Iterable[TargetSequence]]


def load_targets_fasta(fasta_file: Union[str, Path]) -> list[TargetSequence]:
    """Read target sequences from a FASTA file."""
    targets = [
        TargetSequence(id=record.id, seq=str(record.seq))
        for record in SeqIO.parse(str(fasta_file), "fasta")
    ]
    if not targets:
        raise ValueError(f"No sequences found in {fasta_file}")

    logger.info(f"Loaded {len(targets)} target sequences from {fasta_file}")
    return targets


def load_targets_table(table_file: Union[str, Path]) -> list[TargetSequence]:
    """Read target sequences from a tab separated file with ``id`` and ``seq`` columns."""
    df = pd.read_csv(table_file, sep="\t", dtype={"id": str, "seq": str}, keep_default_na=False)
    targets = targets_from_dataframe(df)
    logger.info(f"Loaded {len(targets)} target sequences from {table_file}")
    return targets


def targets_from_dataframe(df: pd.DataFrame) -> list[TargetSequence]:
    """Build targets from a data frame holding at least ``id`` and ``seq``."""
    missing = {"id", "seq"} - set(df.columns)
    if missing:
        raise ValueError(f"Targets table is missing columns: {', '.join(sorted(missing))}")

    targets = []
    for row in df.to_dict(orient="records"):
        seq = row["seq"]
        if not isinstance(seq, str) or not seq.strip():
            raise ValueError(f"Target {row['id']} has no sequence")
        length = row.get("length")
        if isinstance(length, str):
            length = length.strip() or None
        targets.append(
            TargetSequence(
                id=str(row["id"]),
                seq=seq,
                length=None if length is None or pd.isna(length) else int(length),
            )
        )
    return targets


def coerce_targets(targets: TargetsInput) -> list[TargetSequence]:
    """Accept a data frame or an iterable of TargetSequence objects."""
    if isinstance(targets, pd.DataFrame):
        return targets_from_dataframe(targets)
    return list(targets)


def targets_to_dataframe(targets: Iterable[TargetSequence]) -> pd.DataFrame:
    """Targets table (``id``, ``length``, ``seq``), validated."""
    records = list(targets)
    df = pd.DataFrame(
        {
            "id": pd.Series([target.id for target in records], dtype=str),
            "length": pd.Series([target.length for target in records], dtype="int64"),
            "seq": pd.Series([target.seq for target in records], dtype=str),
        }
    )
    return TargetsSchema.validate(df)
