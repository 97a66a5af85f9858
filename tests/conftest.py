"""Shared pytest fixtures for all test modules."""

import pytest

from circprofiler.data.mirna_manager import InMemoryMiRNAReference
from circprofiler.models.mirna import MicroRNARecord, TargetSequence

MIR16 = "UAGCAGCACGUAAAUAUUGGCG"
MIR16_REVCOMP = "CGCCAAUAUUUACGUGCUGCUA"
LET7A = "UGAGGUAGUAGGUUGUAUAGUU"

MOUSE_MIRNAS = [
    ("mmu-mySeq", "UUCUUCGAGAUCAUAUGG"),
    ("mmu-mySeq2", "UGAGGUAGUAGGUUGUAUAGUU"),
    ("mmu-miR-7000-3p", "CACCCACCUGCCUGUCCUCCAG"),
]

MATURE_FA = """>hsa-miR-16-5p MIMAT0000069 Homo sapiens miR-16-5p
UAGCAGCACGUAAAUAUUGGCG
>mmu-mySeq MIMAT9999901 Mus musculus mySeq
UUCUUCGAGAUCAUAUGG
>hsa-let-7a-5p MIMAT0000062 Homo sapiens let-7a-5p
UGAGGUAGUAGGUUGUAUAGUU
>mmu-mySeq2 MIMAT9999902 Mus musculus mySeq2
UGAGGUAGUAGG
UUGUAUAGUU
>mmu-miR-7000-3p MIMAT0028088 Mus musculus miR-7000-3p
CACCCACCUGCCUGUCCUCCAG
>rno-miR-1-3p MIMAT0003125 Rattus norvegicus miR-1-3p
UGGAAUGUAAAGAAGUAUGUAU
"""


@pytest.fixture
def mir16():
    """Human miR-16-5p."""
    return MicroRNARecord(id="hsa-miR-16-5p", seq=MIR16)


@pytest.fixture
def site_target():
    """Target holding one perfect miR-16 site between two 40 nt C runs.

    The seed match starts at position 55 and the nucleotide facing miRNA
    position 1 is an A.
    """
    return TargetSequence(id="circSite", seq="C" * 40 + MIR16_REVCOMP + "C" * 40)


@pytest.fixture
def mature_fa(tmp_path):
    """miRBase-style mature.fa with human, mouse and rat entries."""
    path = tmp_path / "mature.fa"
    path.write_text(MATURE_FA)
    return path


@pytest.fixture
def human_reference():
    """In-memory reference with two human miRNAs."""
    return InMemoryMiRNAReference([("hsa-miR-16-5p", MIR16), ("hsa-let-7a-5p", LET7A)])


@pytest.fixture
def mouse_reference():
    """In-memory reference with three mouse miRNAs and one human miRNA."""
    return InMemoryMiRNAReference([*MOUSE_MIRNAS[:1], ("hsa-miR-16-5p", MIR16), *MOUSE_MIRNAS[1:]])


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """Auto-assign tier markers based on test type.

    Tier hierarchy:
    - dev: Fast unit tests for development iteration
    - release: Integration tests and heavy workloads for release validation
    """
    for item in items:
        marker_names = {mark.name for mark in item.iter_markers()}

        if "smoke" in marker_names:
            if "ci" not in marker_names:
                item.add_marker(pytest.mark.ci)
            continue

        if marker_names & {"integration", "slow"}:
            if "release" not in marker_names:
                item.add_marker(pytest.mark.release)
            continue

        if "dev" not in marker_names and "release" not in marker_names and "ci" not in marker_names:
            item.add_marker(pytest.mark.dev)
