"""miRBase reference manager with local caching and species filtering.

This module provides the reference microRNA store used by the binding-site
analysis: the latest miRBase release is downloaded once, filtered by species
code and cached on disk, while a user-supplied ``mature.fa`` can be used
instead. All providers expose the same ``load`` interface so that the site
scorer never looks data up on its own.
"""

import contextlib
import gzip
import hashlib
import html
import json
import os
import tempfile
import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional, Protocol, Union

import pandas as pd

from circprofiler.data.base import FastaUtils
from circprofiler.models.mirna import MicroRNARecord
from circprofiler.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class DatabaseSource:
    """Configuration for a miRNA database source."""

    name: str
    url: str
    species: str  # miRBase species code, e.g. "hsa"
    format: str
    compressed: bool = False
    description: str = ""

    def cache_key(self) -> str:
        """Generate a unique cache key for this source."""
        content = f"{self.name}_{self.species}_{self.url}"
        return hashlib.md5(content.encode()).hexdigest()[:12]


@dataclass
class CacheMetadata:
    """Metadata for cached database files."""

    source: DatabaseSource
    downloaded_at: str
    file_size: int
    checksum: str
    version: str = "1.0"

    @classmethod
    def from_dict(cls, data: dict) -> "CacheMetadata":
        """Create CacheMetadata from dictionary."""
        source = DatabaseSource(**data["source"])
        return cls(
            source=source,
            downloaded_at=data["downloaded_at"],
            file_size=data["file_size"],
            checksum=data["checksum"],
            version=data.get("version", "1.0"),
        )

    def to_dict(self) -> dict:
        """Convert CacheMetadata to dictionary."""
        return asdict(self)


def filter_species_records(
    records: Iterable[tuple[str, str]], species_code: str
) -> list[tuple[str, str]]:
    """Keep (header, sequence) pairs whose identifier starts with ``<code>-``.

    The identifier is the first whitespace-delimited token of the header, with
    or without the leading ">" marker. Input order is preserved.
    """
    prefix = f"{species_code.strip().lstrip('>')}-"
    kept = []
    for header, sequence in records:
        tokens = header.lstrip(">").split()
        if tokens and tokens[0].startswith(prefix):
            kept.append((tokens[0], sequence))
    return kept


def records_to_mirnas(records: Iterable[tuple[str, str]]) -> list[MicroRNARecord]:
    """Build unique MicroRNARecord objects, keeping the first occurrence of each id."""
    mirnas: list[MicroRNARecord] = []
    seen: set[str] = set()
    for identifier, sequence in records:
        mirna = MicroRNARecord(id=identifier, seq=sequence)
        if mirna.id in seen:
            logger.warning(f"Duplicate miRNA id {mirna.id} ignored")
            continue
        seen.add(mirna.id)
        mirnas.append(mirna)
    return mirnas


def read_mirna_ids(path: Union[str, Path] = "miRs.txt") -> Optional[list[str]]:
    """Read the optional miRNA allowlist (tab separated, header ``id``).

    Returns:
        Marker-prefixed ids in file order, or None when every miRNA of the
        species should be analyzed (file absent, empty or malformed).
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"{path.name} not found: all miRNAs of the selected species will be analyzed")
        return None

    try:
        table = pd.read_csv(path, sep="\t", dtype=str)
    except pd.errors.EmptyDataError:
        logger.info(f"{path.name} is empty: all miRNAs of the selected species will be analyzed")
        return None

    if "id" not in table.columns:
        logger.warning(f"Missing or wrong column names in {path.name}: id")
        return None

    ids = [value.strip() for value in table["id"].dropna() if value.strip()]
    if not ids:
        logger.info(f"{path.name} is empty: all miRNAs of the selected species will be analyzed")
        return None

    return [value if value.startswith(">") else f">{value}" for value in ids]


class MiRNAReference(Protocol):
    """Reference microRNA store."""

    def load(self, species_code: str) -> list[MicroRNARecord]:
        """Return the mature miRNAs of a species in reference order."""
        ...


class InMemoryMiRNAReference:
    """Reference built from already available (id, sequence) pairs."""

    def __init__(self, records: Iterable[tuple[str, str]]):
        self.records = list(records)

    def load(self, species_code: str) -> list[MicroRNARecord]:
        return records_to_mirnas(filter_species_records(self.records, species_code))


class FastaMiRNAReference:
    """User supplied mature miRNA FASTA file (miRBase ``mature.fa`` layout)."""

    def __init__(self, path: Union[str, Path] = "mature.fa"):
        self.path = Path(path)

    def load(self, species_code: str) -> list[MicroRNARecord]:
        if not self.path.exists():
            raise FileNotFoundError(f"miRNA reference file not found: {self.path}")

        records = filter_species_records(FastaUtils.read_fasta(self.path), species_code)
        logger.info(f"Loaded {len(records)} {species_code} miRNAs from {self.path}")
        return records_to_mirnas(records)


class MiRBaseReference:
    """Latest miRBase release, fetched through the caching manager."""

    def __init__(
        self,
        manager: Optional["MiRNADatabaseManager"] = None,
        source_name: str = "mirbase",
        force_refresh: bool = False,
    ):
        self.manager = manager or MiRNADatabaseManager()
        self.source_name = source_name
        self.force_refresh = force_refresh

    def load(self, species_code: str) -> list[MicroRNARecord]:
        cache_file = self.manager.get_database(self.source_name, species_code, force_refresh=self.force_refresh)
        if cache_file is None:
            raise RuntimeError(f"Could not retrieve {self.source_name} miRNAs for species '{species_code}'")
        return FastaMiRNAReference(cache_file).load(species_code)


def select_mirnas(
    reference: MiRNAReference,
    species_code: str,
    mir_ids: Optional[Sequence[str]] = None,
) -> list[MicroRNARecord]:
    """Load a species from a reference and optionally restrict it to an id allowlist.

    The reference order is kept. Requested ids missing from the reference are
    reported and skipped.
    """
    mirnas = reference.load(species_code)

    if mir_ids:
        wanted = {value.strip() if value.strip().startswith(">") else f">{value.strip()}" for value in mir_ids}
        missing = wanted - {mirna.id for mirna in mirnas}
        if missing:
            logger.warning(f"{len(missing)} requested miRNAs not found in reference: {', '.join(sorted(missing))}")
        mirnas = [mirna for mirna in mirnas if mirna.id in wanted]

    if not mirnas:
        logger.warning(f"No miRNAs available for species code '{species_code}'")

    return mirnas


class MiRNADatabaseManager:
    """miRBase database manager with caching and species filtering."""

    # Database source configurations; all species share one release file
    SOURCES = {
        "mirbase": DatabaseSource(
            name="mirbase_mature",
            url="https://www.mirbase.org/download/CURRENT/mature.fa",
            species="all",
            format="fasta",
            compressed=False,
            description="miRBase mature miRNA sequences (latest release)",
        ),
        "mirbase_high_conf": DatabaseSource(
            name="mirbase_mature_hc",
            url="https://www.mirbase.org/download/CURRENT/mature_high_conf.fa",
            species="all",
            format="fasta",
            compressed=False,
            description="miRBase high-confidence mature miRNA sequences (latest release)",
        ),
    }

    @classmethod
    def get_available_sources(cls) -> list[str]:
        """Return sorted list of supported database sources."""
        return sorted(cls.SOURCES.keys())

    @classmethod
    def get_source_configuration(cls, source_name: str, species_code: str) -> Optional[DatabaseSource]:
        """Return the species-specific source configuration, if supported."""
        base = cls.SOURCES.get(source_name)
        if base is None or not species_code:
            return None
        return DatabaseSource(
            name=base.name,
            url=base.url,
            species=species_code.lower(),
            format=base.format,
            compressed=base.compressed,
            description=f"{base.description} [{species_code.lower()}]",
        )

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None, cache_ttl_days: int = 30):
        """Initialize the miRNA database manager.

        Args:
            cache_dir: Directory for caching databases (default: ~/.cache/circprofiler/mirna)
            cache_ttl_days: Cache time-to-live in days
        """
        fallback_locations: list[Path] = []
        env_override = os.getenv("CIRCPROFILER_CACHE_DIR")

        if cache_dir is not None:
            fallback_locations.append(Path(cache_dir))
        else:
            if env_override:
                fallback_locations.append(Path(env_override))

            xdg_cache = os.getenv("XDG_CACHE_HOME")
            if xdg_cache:
                fallback_locations.append(Path(xdg_cache) / "circprofiler" / "mirna")

            fallback_locations.append(Path.home() / ".cache" / "circprofiler" / "mirna")
            fallback_locations.append(Path.cwd() / ".circprofiler_cache" / "mirna")
            fallback_locations.append(Path(tempfile.gettempdir()) / "circprofiler" / "mirna")

        cache_path: Optional[Path] = None
        first_error: Optional[Exception] = None
        for candidate in fallback_locations:
            try:
                candidate.mkdir(parents=True, exist_ok=True)
                cache_path = candidate
                break
            except PermissionError as exc:
                logger.warning("Cannot create cache directory at %s; trying next option", candidate)
                if first_error is None:
                    first_error = exc

        if cache_path is None:
            if cache_dir is not None and first_error is not None:
                raise first_error
            raise RuntimeError("Cannot create a writable cache directory for miRNA databases")

        self.cache_dir = cache_path

        self.cache_ttl = timedelta(days=cache_ttl_days)
        self.metadata_file = self.cache_dir / "cache_metadata.json"

        self._load_metadata()

    def _load_metadata(self) -> None:
        """Load cache metadata from disk."""
        self.metadata: dict[str, CacheMetadata] = {}

        if self.metadata_file.exists():
            try:
                with self.metadata_file.open("r") as f:
                    data = json.load(f)
                    for key, meta_dict in data.items():
                        self.metadata[key] = CacheMetadata.from_dict(meta_dict)
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                logger.warning(f"Failed to load cache metadata: {e}")

    def _save_metadata(self) -> None:
        """Save cache metadata to disk."""
        data = {key: meta.to_dict() for key, meta in self.metadata.items()}
        with self.metadata_file.open("w") as f:
            json.dump(data, f, indent=2)

    def _compute_file_checksum(self, file_path: Path) -> str:
        """Compute MD5 checksum of a file."""
        hash_md5 = hashlib.md5()
        with file_path.open("rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _is_cache_valid(self, cache_key: str) -> bool:
        """Check if cached data is still valid."""
        if cache_key not in self.metadata:
            return False

        meta = self.metadata[cache_key]
        cache_file = self.cache_dir / f"{cache_key}.fa"

        if not cache_file.exists():
            return False

        if cache_file.stat().st_size == 0:
            logger.warning("Cache file %s is empty; marking as invalid", cache_file)
            return False

        downloaded_at = datetime.fromisoformat(meta.downloaded_at)
        if datetime.now() - downloaded_at > self.cache_ttl:
            return False

        if self._compute_file_checksum(cache_file) != meta.checksum:
            logger.warning(f"Cache file {cache_file} corrupted, will re-download")
            return False

        return True

    def _download_file(self, source: DatabaseSource) -> Optional[str]:
        """Download file from source URL and return as text."""
        try:
            logger.info(f"Downloading {source.name}: {source.url}")

            request = urllib.request.Request(
                source.url,
                headers={
                    "User-Agent": "circprofiler/0.1",
                    "Accept": "text/plain,application/octet-stream",
                },
            )

            with urllib.request.urlopen(request, timeout=300) as response:  # nosec B310
                data = response.read()

            if source.compressed and source.url.endswith(".gz"):
                data = gzip.decompress(data)

            try:
                content: str = data.decode("utf-8")
            except UnicodeDecodeError:
                content = data.decode("latin-1")

            # miRBase occasionally serves HTML-escaped FASTA
            content = html.unescape(content)
            content = content.replace("<br>", "\n").replace("<BR>", "\n")

            if not content.strip():
                logger.error("Received empty response from %s", source.url)
                return None

            logger.info(f"Downloaded {len(content):,} characters")
            return content

        except OSError as e:
            logger.error(f"Failed to download {source.url}: {e}")
            return None

    def _filter_species_sequences(self, fasta_content: str, species_code: str) -> str:
        """Filter FASTA content for one miRBase species code, as FASTA text."""
        records = filter_species_records(FastaUtils.parse_fasta_text(fasta_content), species_code)
        if not records:
            logger.error("No sequences found for species '%s' after filtering", species_code)
        logger.info(f"Filtered to {len(records)} {species_code} sequences")
        return "".join(f">{identifier}\n{sequence}\n" for identifier, sequence in records)

    def get_database(self, source_name: str, species_code: str, force_refresh: bool = False) -> Optional[Path]:
        """Get the miRNA database of one species, downloading and filtering if needed.

        Each species+source combination gets its own cache file.

        Args:
            source_name: Database source ("mirbase" or "mirbase_high_conf")
            species_code: miRBase species code ("hsa", "mmu", ...)
            force_refresh: Force re-download even if cached

        Returns:
            Path to cached FASTA file, or None if failed
        """
        source = self.get_source_configuration(source_name, species_code)
        if source is None:
            logger.error(f"Unknown source/species combination: {source_name}/{species_code}")
            return None

        cache_key = source.cache_key()
        cache_file = self.cache_dir / f"{cache_key}.fa"

        if not force_refresh and self._is_cache_valid(cache_key):
            logger.info(f"Using cached {source.name} ({source.species}): {cache_file}")
            return cache_file

        def cleanup_cache() -> None:
            if cache_file.exists():
                cache_file.unlink(missing_ok=True)
            if cache_key in self.metadata:
                del self.metadata[cache_key]
                self._save_metadata()

        content = self._download_file(source)
        if content is None:
            cleanup_cache()
            return None

        content = self._filter_species_sequences(content, source.species)
        if not content.strip():
            logger.error(
                "Filtered %s content for %s produced no sequences; discarding cache update",
                source_name,
                source.species,
            )
            cleanup_cache()
            return None

        with cache_file.open("w", encoding="utf-8") as f:
            f.write(content)

        self.metadata[cache_key] = CacheMetadata(
            source=source,
            downloaded_at=datetime.now().isoformat(),
            file_size=cache_file.stat().st_size,
            checksum=self._compute_file_checksum(cache_file),
        )
        self._save_metadata()

        logger.info(f"Cached {source.name} ({source.species}): {cache_file} ({cache_file.stat().st_size:,} bytes)")
        return cache_file

    def clean_cache(self, older_than_days: Optional[int] = None) -> int:
        """Remove cache files older than the given age (default: the TTL).

        Returns:
            Number of removed files
        """
        if older_than_days is None:
            older_than_days = self.cache_ttl.days

        cutoff = datetime.now() - timedelta(days=older_than_days)
        removed_count = 0
        expired_count = 0

        for cache_key in list(self.metadata.keys()):
            meta = self.metadata[cache_key]
            downloaded_at = datetime.fromisoformat(meta.downloaded_at)

            if downloaded_at < cutoff:
                cache_file = self.cache_dir / f"{cache_key}.fa"
                if cache_file.exists():
                    cache_file.unlink()
                    removed_count += 1

                del self.metadata[cache_key]
                expired_count += 1

        if expired_count > 0:
            self._save_metadata()

        if removed_count > 0:
            logger.info(f"Cleaned {removed_count} old cache files")
        else:
            logger.info("No old cache files to clean")
        return removed_count

    def cache_info(self) -> dict[str, Any]:
        """Get information about the current cache state."""
        cache_files = list(self.cache_dir.glob("*.fa"))
        total_size = sum(f.stat().st_size for f in cache_files)

        return {
            "cache_directory": str(self.cache_dir),
            "total_files": len(cache_files),
            "total_size_mb": total_size / (1024 * 1024),
            "cache_ttl_days": self.cache_ttl.days,
            "cached_databases": [
                f"{meta.source.name}/{meta.source.species}" for meta in self.metadata.values()
            ],
        }

    def clear_cache(self, confirm: bool = False) -> dict[str, Any]:
        """Clear the miRNA cache directory.

        Args:
            confirm: If True, actually delete files. If False, just report what would be deleted.

        Returns:
            Dictionary with information about files deleted or that would be deleted.
        """
        all_files = list(self.cache_dir.glob("*.fa")) + list(self.cache_dir.glob("*.json"))
        total_size = sum(f.stat().st_size for f in all_files if f.exists())

        result: dict[str, Any] = {
            "cache_directory": str(self.cache_dir),
            "files_deleted": len(all_files),
            "size_freed_mb": total_size / (1024 * 1024),
        }

        if confirm:
            for file_path in all_files:
                with contextlib.suppress(FileNotFoundError):
                    file_path.unlink()
            self.metadata = {}
            result["status"] = "Cache cleared successfully"
        else:
            result["status"] = f"Would delete {len(all_files)} files ({total_size / (1024 * 1024):.2f} MB)"

        return result
