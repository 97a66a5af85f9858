"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from circprofiler import __version__
from circprofiler.cli import app
from circprofiler.data.mirna_manager import MiRNADatabaseManager

runner = CliRunner()


@pytest.fixture
def targets_fasta(tmp_path, site_target):
    path = tmp_path / "targets.fa"
    path.write_text(f">{site_target.id}\n{site_target.seq}\n")
    return path


@pytest.mark.unit
def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


@pytest.mark.unit
def test_compare():
    result = runner.invoke(app, ["compare", "AUCCGU", "UAGCUU"])
    assert result.exit_code == 0
    assert "wwwmnm" in result.stdout

    result = runner.invoke(app, ["compare", "--no-wobble", "AUCCGU", "UAGCUU"])
    assert "wwwmmm" in result.stdout


@pytest.mark.unit
def test_compare_unequal_lengths():
    result = runner.invoke(app, ["compare", "AUG", "UA"])
    assert result.exit_code == 1


@pytest.mark.unit
def test_mirsites_with_local_mature(targets_fasta, mature_fa, tmp_path):
    output_dir = tmp_path / "out"
    result = runner.invoke(
        app,
        [
            "mirsites",
            str(targets_fasta),
            "--local-mature",
            "--mature-fa",
            str(mature_fa),
            "--mir-species-code",
            "hsa",
            "-o",
            str(output_dir),
        ],
    )

    assert result.exit_code == 0, result.stdout
    assert (output_dir / "matrices" / "counts.tsv").exists()
    assert (output_dir / "targets" / "0001_circSite.json").exists()
    assert "hsa-miR-16-5p" in result.stdout


@pytest.mark.unit
def test_mirsites_missing_mature(targets_fasta, tmp_path):
    result = runner.invoke(
        app,
        ["mirsites", str(targets_fasta), "--local-mature", "--mature-fa", str(tmp_path / "missing.fa")],
    )
    assert result.exit_code == 1


@pytest.mark.unit
def test_mirsites_invalid_parameters(targets_fasta, mature_fa):
    result = runner.invoke(
        app,
        ["mirsites", str(targets_fasta), "--local-mature", "--mature-fa", str(mature_fa), "--total-matches=-1"],
    )
    assert result.exit_code == 2


@pytest.mark.unit
def test_cache_info(tmp_path):
    result = runner.invoke(app, ["cache", "--cache-dir", str(tmp_path / "cache")])
    assert result.exit_code == 0
    assert "miRBase cache" in result.stdout


@pytest.mark.unit
def test_mirsites_min_sites_cutoff(targets_fasta, mature_fa, tmp_path):
    """miR-16 has a single site, so a cut-off of two leaves the summary empty."""
    args = ["mirsites", str(targets_fasta), "--local-mature", "--mature-fa", str(mature_fa)]

    listed = runner.invoke(app, [*args, "-o", str(tmp_path / "one"), "--min-sites", "1"])
    assert listed.exit_code == 0, listed.stdout
    assert "hsa-miR-16-5p" in listed.stdout

    filtered = runner.invoke(app, [*args, "-o", str(tmp_path / "two"), "--min-sites", "2"])
    assert filtered.exit_code == 0, filtered.stdout
    assert "hsa-miR-16-5p" not in filtered.stdout


@pytest.mark.unit
def test_mirsites_unknown_source(targets_fasta):
    result = runner.invoke(app, ["mirsites", str(targets_fasta), "--source", "mirgenedb"])
    assert result.exit_code == 2


@pytest.mark.unit
def test_mirsites_high_confidence_source(targets_fasta, mature_fa, tmp_path, monkeypatch):
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("CIRCPROFILER_CACHE_DIR", str(cache_dir))
    monkeypatch.setattr(MiRNADatabaseManager, "_download_file", lambda self, source: mature_fa.read_text())

    result = runner.invoke(
        app, ["mirsites", str(targets_fasta), "--source", "mirbase_high_conf", "-o", str(tmp_path / "out")]
    )

    assert result.exit_code == 0, result.stdout
    info = MiRNADatabaseManager(cache_dir=cache_dir).cache_info()
    assert info["cached_databases"] == ["mirbase_mature_hc/hsa"]
