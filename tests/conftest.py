import pytest
from pathlib import Path

from analyze_gc.core.models import Contig
from analyze_gc.parsers.fasta_parser import encode_sequence


def make_contig(sequence: str, name: str = "ctg") -> Contig:
    return Contig(name=name, codes=encode_sequence(sequence))


@pytest.fixture
def write_fasta(tmp_path):
    """Write a FASTA file from (name, sequence) pairs and return its path."""
    def _write(records, name="ref.fa", line_width=60) -> Path:
        lines = []
        for record_name, sequence in records:
            lines.append(f">{record_name}")
            for i in range(0, len(sequence), line_width):
                lines.append(sequence[i:i + line_width])
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write


@pytest.fixture
def simple_fasta():
    return ">chr1 first test contig\nACGTACGTNNACGT\n>chr2\nGGGGCCCCAATT\n"
