"""Shared sequence and FASTA utilities."""

import re
from pathlib import Path
from typing import Union

_RNA_PATTERN = re.compile(r"^[ACGUN]*$")


class SequenceUtils:
    """Utility functions for sequence analysis."""

    RNA_COMPLEMENT = {"A": "U", "U": "A", "G": "C", "C": "G", "N": "N"}

    @staticmethod
    def to_rna(sequence: str) -> str:
        """Upper-case a nucleotide sequence and convert T to U."""
        return sequence.strip().upper().replace("T", "U")

    @staticmethod
    def is_valid_rna(sequence: str) -> bool:
        """Check that a normalised sequence only contains A, C, G, U or N."""
        return bool(_RNA_PATTERN.match(sequence))

    @staticmethod
    def reverse(sequence: str) -> str:
        """Reverse a sequence without complementing it."""
        return sequence[::-1]

    @staticmethod
    def reverse_complement(sequence: str) -> str:
        """Get reverse complement of an RNA sequence."""
        rna = SequenceUtils.to_rna(sequence)
        return "".join(SequenceUtils.RNA_COMPLEMENT.get(base, "N") for base in reversed(rna))

    @staticmethod
    def calculate_au_content(sequence: str) -> float:
        """Fraction (0-1) of A and U bases in a sequence."""
        if not sequence:
            return 0.0

        rna = SequenceUtils.to_rna(sequence)
        return (rna.count("A") + rna.count("U")) / len(rna)


class FastaUtils:
    """Utility functions for FASTA file operations."""

    @staticmethod
    def read_fasta(file_path: Union[str, Path]) -> list[tuple[str, str]]:
        """
        Read sequences from FASTA file.

        Args:
            file_path: Path to FASTA file

        Returns:
            List of (header, sequence) tuples, headers without the leading ">"
        """
        return FastaUtils.parse_fasta_text(Path(file_path).read_text())

    @staticmethod
    def parse_fasta_text(content: str) -> list[tuple[str, str]]:
        """Parse FASTA formatted text into (header, sequence) tuples."""
        sequences = []
        current_header = None
        current_sequence: list[str] = []

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if line.startswith(">"):
                if current_header is not None:
                    sequences.append((current_header, "".join(current_sequence)))
                current_header = line[1:]
                current_sequence = []
            elif current_header is not None and line:
                current_sequence.append(line.upper())

        if current_header is not None:
            sequences.append((current_header, "".join(current_sequence)))

        return sequences
