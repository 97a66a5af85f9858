"""End-to-end binding-site workflow: files in, matrices and per-target tables out."""

import json

import pandas as pd
import pytest

from circprofiler.core.mirna_sites import BUNDLE_FIELDS, MATRIX_FIELDS, get_mir_sites, rearrange_mir_results
from circprofiler.data.mirna_manager import MiRBaseReference, MiRNADatabaseManager
from circprofiler.data.targets import load_targets_fasta
from circprofiler.io import write_bundle, write_rearranged

MOUSE_CIRC = "GGAUCCAAAG" * 4 + "CUGGAGGACAGGCAGGUGGGUG" + "AAGUCCUAGG" * 4


@pytest.fixture
def targets_fasta(tmp_path, site_target):
    path = tmp_path / "circ.fa"
    path.write_text(f">{site_target.id}\n{site_target.seq}\n>mmuCirc\n{MOUSE_CIRC}\n")
    return path


@pytest.mark.integration
def test_local_mature_workflow(targets_fasta, mature_fa, tmp_path):
    """Mouse miRNAs from a local mature.fa, restricted by a miRs.txt allowlist."""
    mirs = tmp_path / "miRs.txt"
    mirs.write_text("id\nmmu-miR-7000-3p\nmmu-mySeq\n")

    targets = load_targets_fasta(targets_fasta)
    bundle = get_mir_sites(
        targets,
        species="Mmusculus",
        genome="mm10",
        mir_species_code="mmu",
        mirbase_latest_release=False,
        path_to_mature=mature_fa,
        path_to_mirs=mirs,
        max_non_canonical_matches=0,
    )

    assert bundle["microRNAs"]["id"].tolist() == [">mmu-mySeq", ">mmu-miR-7000-3p"]
    assert bundle["counts"].loc["mmuCirc", ">mmu-miR-7000-3p"] == 1
    assert bundle["seedLocation"].loc["mmuCirc", ">mmu-miR-7000-3p"] == 55
    assert bundle["cwcMatchesInSeed"].loc["mmuCirc", ">mmu-miR-7000-3p"] == "7mer"
    assert bundle.metadata["genome"] == "mm10"

    matrices = write_bundle(bundle, tmp_path / "out" / "matrices")
    assert len(matrices) == len(BUNDLE_FIELDS)

    rearranged = rearrange_mir_results(bundle)
    paths = write_rearranged(rearranged, tmp_path / "out" / "targets")
    assert [path.name for path in paths] == ["0001_circSite.json", "0002_mmuCirc.json"]

    document = json.loads(paths[1].read_text())
    assert document["target"]["id"] == "mmuCirc"
    assert [row["miRid"] for row in document["microRNAs"]] == [">mmu-mySeq", ">mmu-miR-7000-3p"]

    for i, entry in enumerate(rearranged):
        for field in MATRIX_FIELDS:
            pd.testing.assert_series_equal(
                entry.mirnas[field], bundle[field].iloc[i].reset_index(drop=True), check_names=False
            )


@pytest.mark.integration
def test_latest_release_workflow(site_target, mature_fa, tmp_path, monkeypatch):
    """Latest-release path with the download served from the mature.fa fixture."""
    manager = MiRNADatabaseManager(cache_dir=tmp_path / "cache")
    monkeypatch.setattr(manager, "_download_file", lambda source: mature_fa.read_text())

    bundle = get_mir_sites(
        [site_target],
        mir_species_code="hsa",
        reference=MiRBaseReference(manager=manager),
        num_threads=2,
    )

    assert bundle["counts"].columns.tolist() == [">hsa-miR-16-5p", ">hsa-let-7a-5p"]
    assert bundle["counts"].loc["circSite", ">hsa-miR-16-5p"] == 1
    assert manager.cache_info()["cached_databases"] == ["mirbase_mature/hsa"]
