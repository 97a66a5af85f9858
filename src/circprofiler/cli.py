"""Command-line interface for circprofiler."""

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from circprofiler import __version__
from circprofiler.core.mirna_sites import compare_sequences, get_mir_sites, rearrange_mir_results, top_mirnas
from circprofiler.data.mirna_manager import MiRBaseReference, MiRNADatabaseManager
from circprofiler.data.targets import load_targets_fasta, load_targets_table
from circprofiler.io import write_bundle, write_rearranged
from circprofiler.models.mirna import MiRSiteParameters

app = typer.Typer(
    name="circprofiler",
    help="circRNA downstream analysis: microRNA binding sites in back-spliced sequences.",
    no_args_is_help=True,
)
console = Console()


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"circprofiler {__version__}")


@app.command()
def compare(
    mirna_segment: str = typer.Argument(..., help="miRNA-derived sequence"),
    target_segment: str = typer.Argument(..., help="Target-derived sequence of the same length"),
    no_wobble: bool = typer.Option(False, "--no-wobble", help="Report G-U pairs as mismatches"),
) -> None:
    """Print the pairing classes (w/n/m) of two aligned sequences."""
    try:
        console.print(compare_sequences(mirna_segment, target_segment, is_gu_match=not no_wobble))
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def mirsites(  # noqa: PLR0913
    targets_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Targets FASTA or TSV (id, seq)"),
    output_dir: Path = typer.Option(Path("mirsites"), "--output-dir", "-o", help="Output directory"),
    species: str = typer.Option("Hsapiens", help="Species of the targets"),
    genome: str = typer.Option("hg19", help="Genome assembly of the targets"),
    mir_species_code: str = typer.Option("hsa", "--mir-species-code", help="miRBase species code"),
    latest_release: bool = typer.Option(
        True, "--latest-release/--local-mature", help="Use the latest miRBase release or a local mature.fa"
    ),
    mature_fa: Path = typer.Option(Path("mature.fa"), "--mature-fa", help="Local mature miRNA FASTA"),
    mirs_file: Optional[Path] = typer.Option(None, "--mirs", help="miRNA id allowlist (miRs.txt)"),
    total_matches: int = typer.Option(7, "--total-matches", help="Minimum seed matches"),
    max_non_canonical: int = typer.Option(1, "--max-non-canonical", help="Maximum G-U wobble pairs in the seed"),
    circular: bool = typer.Option(False, "--circular", help="Scan across the back-spliced junction"),
    threads: int = typer.Option(1, "--threads", "-t", min=1, help="Worker threads"),
    source: str = typer.Option("mirbase", "--source", help="miRBase release file used with --latest-release"),
    min_sites: int = typer.Option(1, "--min-sites", min=1, help="Site-count cut-off for miRNAs listed in the summary"),
) -> None:
    """Screen target sequences for microRNA binding sites."""
    try:
        if targets_file.suffix.lower() in {".tsv", ".txt"}:
            targets = load_targets_table(targets_file)
        else:
            targets = load_targets_fasta(targets_file)
    except ValueError as e:
        console.print(f"[red]Invalid targets:[/red] {e}")
        raise typer.Exit(2) from e

    try:
        parameters = MiRSiteParameters(
            total_matches=total_matches,
            max_non_canonical_matches=max_non_canonical,
            circular=circular,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid parameters:[/red] {e}")
        raise typer.Exit(2) from e

    if source not in MiRNADatabaseManager.get_available_sources():
        available = ", ".join(MiRNADatabaseManager.get_available_sources())
        console.print(f"[red]Unknown miRNA source:[/red] {source} (available: {available})")
        raise typer.Exit(2)

    with Progress(console=console) as progress:
        main_task = progress.add_task("[cyan]Scanning binding sites...", total=3)
        try:
            reference = MiRBaseReference(source_name=source) if latest_release else None
            bundle = get_mir_sites(
                targets,
                species=species,
                genome=genome,
                mir_species_code=mir_species_code,
                mirbase_latest_release=latest_release,
                path_to_mirs=mirs_file,
                path_to_mature=mature_fa,
                reference=reference,
                parameters=parameters,
                num_threads=threads,
            )
        except (FileNotFoundError, RuntimeError) as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from e
        progress.advance(main_task)

        progress.update(main_task, description="[cyan]Rearranging per target...")
        rearranged = rearrange_mir_results(bundle)
        progress.advance(main_task)

        progress.update(main_task, description="[cyan]Writing results...")
        write_bundle(bundle, output_dir / "matrices")
        write_rearranged(rearranged, output_dir / "targets")
        progress.advance(main_task)

    for index, entry in enumerate(rearranged):
        table = Table(title=f"{entry.target.id} ({entry.target.length} nt)")
        table.add_column("miRNA")
        table.add_column("sites", justify="right")
        for row in top_mirnas(rearranged, n=min_sites, index=index).itertuples(index=False):
            if not row.top:
                break
            table.add_row(row.label, str(row.counts))
        console.print(table)

    console.print(
        f"[green]{bundle.total_sites()} sites[/green] for {len(bundle.mirna_records)} miRNAs "
        f"in {len(bundle.target_records)} targets written to [blue]{output_dir}[/blue]"
    )


@app.command()
def cache(
    clean: bool = typer.Option(False, "--clean", help="Remove entries older than the TTL"),
    clear: bool = typer.Option(False, "--clear", help="Delete all cached files"),
    dry_run: bool = typer.Option(False, "--dry-run", help="With --clear, only report what would be deleted"),
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Cache directory"),
) -> None:
    """Inspect or clean the miRBase cache."""
    manager = MiRNADatabaseManager(cache_dir=cache_dir)

    if clear:
        result = manager.clear_cache(confirm=not dry_run)
        console.print(f"{result['status']} ({result['cache_directory']})")
        return

    if clean:
        removed = manager.clean_cache()
        console.print(f"Removed {removed} cached files")
        return

    info = manager.cache_info()
    table = Table(title="miRBase cache")
    table.add_column("Property")
    table.add_column("Value")
    table.add_row("Directory", info["cache_directory"])
    table.add_row("Files", str(info["total_files"]))
    table.add_row("Size", f"{info['total_size_mb']:.1f} MB")
    table.add_row("TTL", f"{info['cache_ttl_days']} days")
    table.add_row("Databases", ", ".join(info["cached_databases"]) or "-")
    console.print(table)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
