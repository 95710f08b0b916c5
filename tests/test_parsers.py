import bz2
import gzip
import io
import lzma

import numpy as np
import pytest

from analyze_gc.core.errors import FastaFormatError, ReferenceInputError
from analyze_gc.core.models import Symbol
from analyze_gc.parsers.fasta_parser import (
    detect_compression,
    encode_sequence,
    iter_contigs,
    parse_fasta
)


def test_encode_sequence_is_case_insensitive():
    codes = encode_sequence("ACGTacgtNnRx-")
    expected = [Symbol.A, Symbol.C, Symbol.G, Symbol.T] * 2 + [Symbol.OTHER] * 5
    assert codes.tolist() == [int(s) for s in expected]
    assert codes.dtype == np.uint8


def test_symbol_classification():
    assert Symbol.from_char("g") is Symbol.G
    assert Symbol.from_char("N") is Symbol.OTHER
    assert Symbol.A.is_valid
    assert not Symbol.OTHER.is_valid


def test_parse_fasta(tmp_path, simple_fasta):
    path = tmp_path / "ref.fa"
    path.write_text(simple_fasta)

    contigs = parse_fasta(path)

    # Names are truncated at the first whitespace
    assert [c.name for c in contigs] == ["chr1", "chr2"]
    assert [c.length for c in contigs] == [14, 12]
    assert contigs[0].base_counts()[Symbol.OTHER] == 2
    # Contig boundaries are preserved, no concatenation
    assert "".join(s.name for s in contigs[1].symbols()) == "GGGGCCCCAATT"


def test_parse_fasta_multiline_records(write_fasta):
    sequence = "ACGT" * 50 + "NNNN" + "GC" * 30
    path = write_fasta([("long", sequence), ("short", "AC")], line_width=7)

    contigs = parse_fasta(path)
    assert [c.length for c in contigs] == [len(sequence), 2]
    assert contigs[0].codes.tolist() == encode_sequence(sequence).tolist()


def test_contig_codes_are_read_only(tmp_path, simple_fasta):
    path = tmp_path / "ref.fa"
    path.write_text(simple_fasta)
    contig = parse_fasta(path)[0]
    with pytest.raises(ValueError):
        contig.codes[0] = 0


@pytest.mark.parametrize("opener, suffix", [
    (gzip.open, ".fa.gz"),
    (bz2.open, ".fa.bz2"),
    (lzma.open, ".fa.xz"),
])
def test_parse_compressed_fasta(tmp_path, simple_fasta, opener, suffix):
    plain = tmp_path / "ref.fa"
    plain.write_text(simple_fasta)
    compressed = tmp_path / f"ref{suffix}"
    with opener(compressed, "wt") as f:
        f.write(simple_fasta)

    expected = parse_fasta(plain)
    result = parse_fasta(compressed)
    assert [c.name for c in result] == [c.name for c in expected]
    for got, exp in zip(result, expected):
        assert got.codes.tolist() == exp.codes.tolist()


def test_compression_is_detected_from_content(tmp_path, simple_fasta):
    # Misleading suffix: detection uses magic bytes, not file names
    path = tmp_path / "ref.fa"
    with gzip.open(path, "wt") as f:
        f.write(simple_fasta)
    assert [c.name for c in parse_fasta(path)] == ["chr1", "chr2"]


def test_detect_compression():
    assert detect_compression(b"\x1f\x8b\x08\x00") == "gzip"
    assert detect_compression(b"BZh91A") == "bzip2"
    assert detect_compression(b"\xfd7zXZ\x00") == "xz"
    assert detect_compression(b">chr1\n") is None


def test_leading_blank_lines_are_ignored():
    contigs = list(iter_contigs(io.StringIO("\n\n>a\nACGT\n")))
    assert [c.name for c in contigs] == ["a"]


@pytest.mark.parametrize("content, message", [
    ("", "No FASTA records"),
    ("\n\n", "No FASTA records"),
    ("ACGT\n>a\nACGT\n", "expecting '>'"),
    (">a\nACGT\n>b\n", "empty sequence"),
    (">a\n>b\nACGT\n", "empty sequence"),
    (">\nACGT\n", "empty name"),
    (">a\nAC\tGT\n", "Illegal character"),
    (">a\nACG\x01T\n", "Illegal character"),
])
def test_malformed_fasta(content, message):
    with pytest.raises(FastaFormatError, match=message):
        list(iter_contigs(io.StringIO(content)))


def test_parse_fasta_reports_source(tmp_path):
    path = tmp_path / "bad.fa"
    path.write_text(">a\n")
    with pytest.raises(FastaFormatError, match="bad.fa"):
        parse_fasta(path)


def test_missing_file():
    with pytest.raises(ReferenceInputError):
        parse_fasta("/nonexistent/reference.fa")


def test_truncated_gzip(tmp_path, simple_fasta):
    path = tmp_path / "ref.fa.gz"
    data = gzip.compress((simple_fasta * 50).encode())
    path.write_bytes(data[:len(data) // 2])
    with pytest.raises(ReferenceInputError):
        parse_fasta(path)


def test_duplicate_names_are_kept(caplog):
    contigs = list(iter_contigs(io.StringIO(">a\nACGT\n>a\nGGCC\n")))
    assert len(contigs) == 2
    assert "Duplicate contig name" in caplog.text
