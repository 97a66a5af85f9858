"""Writers for binding-site analysis results."""

import json
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Union

import pandas as pd

from circprofiler.core.mirna_sites import BUNDLE_FIELDS, RearrangedMiRResult
from circprofiler.utils.logging_utils import get_logger

logger = get_logger(__name__)


def _safe_name(identifier: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", identifier).strip("_") or "target"


def write_bundle(bundle: Mapping[str, pd.DataFrame], output_dir: Union[str, Path]) -> list[Path]:
    """Write every bundle table to ``<output_dir>/<name>.tsv``.

    Matrices keep their target index as first column.

    Returns:
        Written paths, in bundle order
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name in BUNDLE_FIELDS:
        table = bundle[name]
        path = output_dir / f"{name}.tsv"
        keep_index = name not in ("targets", "microRNAs")
        table.to_csv(path, sep="\t", index=keep_index, na_rep="NA")
        written.append(path)

    logger.info(f"Wrote {len(written)} result tables to {output_dir}")
    return written


def write_rearranged(rearranged: Sequence[RearrangedMiRResult], output_dir: Union[str, Path]) -> list[Path]:
    """Write one JSON document per target (target record plus miRNA rows).

    Returns:
        Written paths, in target order
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for i, entry in enumerate(rearranged, start=1):
        document = {
            "target": entry.target.model_dump(),
            "microRNAs": json.loads(entry.mirnas.to_json(orient="records")),
        }
        path = output_dir / f"{i:04d}_{_safe_name(entry.target.id)}.json"
        with path.open("w") as f:
            json.dump(document, f, indent=2)
        written.append(path)

    logger.info(f"Wrote {len(written)} per-target results to {output_dir}")
    return written
