"""
FASTA file parser for analyze_gc.
Handles transparent decompression, record parsing and encoding of each contig
into an array of nucleotide symbol codes.
"""

import bz2
import gzip
import io
import itertools
import logging
import lzma
import re
import sys
import zlib
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Union

import numpy as np
from Bio.SeqIO.FastaIO import SimpleFastaParser

from analyze_gc.core.errors import FastaFormatError, ReferenceInputError
from analyze_gc.core.models import Contig, Symbol

logger = logging.getLogger(__name__)

# Magic numbers of the supported compression formats (bgzip is a gzip variant)
_MAGIC = (
    (b"\x1f\x8b", "gzip"),
    (b"BZh", "bzip2"),
    (b"\xfd7zXZ\x00", "xz"),
)

# Anything that is not printable, non-space ASCII
_ILLEGAL_CHARACTER = re.compile(r"[^!-~]")

_ENCODING_TABLE = np.full(256, Symbol.OTHER, dtype=np.uint8)
for _base in (Symbol.A, Symbol.C, Symbol.G, Symbol.T):
    _ENCODING_TABLE[ord(_base.name)] = _base
    _ENCODING_TABLE[ord(_base.name.lower())] = _base

_READ_ERRORS = (OSError, EOFError, lzma.LZMAError, zlib.error)


def detect_compression(magic: bytes) -> Optional[str]:
    """
    Identify the compression format from the first bytes of a stream.

    :param magic: Leading bytes of the stream (6 are enough).
    :return: 'gzip', 'bzip2', 'xz' or None for an uncompressed stream.
    """
    for prefix, name in _MAGIC:
        if magic.startswith(prefix):
            return name
    return None


def _wrap_stream(raw, compression: Optional[str]) -> TextIO:
    # latin-1 maps every byte to a character, illegal ones are reported by iter_contigs
    if compression == "gzip":
        return gzip.open(raw, "rt", encoding="latin-1")
    if compression == "bzip2":
        return bz2.open(raw, "rt", encoding="latin-1")
    if compression == "xz":
        return lzma.open(raw, "rt", encoding="latin-1")
    return io.TextIOWrapper(raw, encoding="latin-1")


def open_reference(path: Optional[Union[str, Path]] = None) -> TextIO:
    """
    Open a reference sequence for reading, decompressing it transparently.

    :param path: Path to the FASTA file; None or '-' reads standard input.
    :return: Text handle over the decompressed content.
    :raises ReferenceInputError: if the file cannot be opened.
    """
    if path is None or str(path) == "-":
        raw = sys.stdin.buffer
        if not hasattr(raw, "peek"):
            raw = io.BufferedReader(raw)
        compression = detect_compression(raw.peek(6)[:6])
        logger.debug(f"Reading reference from <stdin> (compression: {compression or 'none'})")
        return _wrap_stream(raw, compression)

    path = Path(path)
    try:
        with open(path, "rb") as f:
            compression = detect_compression(f.read(6))
        logger.debug(f"Opening {path} for input (compression: {compression or 'none'})")
        if compression == "gzip":
            return gzip.open(path, "rt", encoding="latin-1")
        if compression == "bzip2":
            return bz2.open(path, "rt", encoding="latin-1")
        if compression == "xz":
            return lzma.open(path, "rt", encoding="latin-1")
        return open(path, "r", encoding="latin-1")
    except OSError as e:
        raise ReferenceInputError(f"Could not open reference file {path}: {e}") from e


def encode_sequence(sequence: str) -> np.ndarray:
    """
    Encode a nucleotide string as Symbol codes, case-insensitively.
    A/C/G/T map to their symbol, every other character (including N) to Symbol.OTHER.
    """
    return _ENCODING_TABLE[np.frombuffer(sequence.encode("latin-1"), dtype=np.uint8)]


def iter_contigs(handle: Iterable[str]) -> Iterator[Contig]:
    """
    Lazily parse FASTA records from a text handle.

    :param handle: Iterable of text lines.
    :return: Generator of Contig objects, one per record, in file order.
    :raises FastaFormatError: on malformed input.
    """
    lines = iter(handle)
    for first_line in lines:
        if first_line.strip():
            break
    else:
        raise FastaFormatError("No FASTA records found in input")
    if not first_line.startswith(">"):
        raise FastaFormatError("Bad FASTA format: expecting '>' at start of input")

    seen = set()
    for title, sequence in SimpleFastaParser(itertools.chain([first_line], lines)):
        fields = title.split(None, 1)
        if not fields:
            raise FastaFormatError("FASTA record with an empty name")
        name = fields[0]
        if not sequence:
            raise FastaFormatError(f"FASTA record '{name}' has an empty sequence")
        illegal = _ILLEGAL_CHARACTER.search(sequence)
        if illegal:
            raise FastaFormatError(
                f"Illegal character {illegal.group()!r} at position {illegal.start()} of record '{name}'"
            )
        if name in seen:
            logger.warning(f"Duplicate contig name '{name}'; records are counted independently")
        seen.add(name)
        yield Contig(name=name, codes=encode_sequence(sequence))


def parse_fasta(fasta_path: Optional[Union[str, Path]] = None) -> List[Contig]:
    """
    Load every contig of a FASTA file into memory.
    The whole file is read before returning, so input errors surface before any counting starts.

    :param fasta_path: Path to the FASTA file (plain or compressed); None or '-' for stdin.
    :return: List of contigs in file order.
    :raises ReferenceInputError: if the input cannot be read or decompressed.
    :raises FastaFormatError: if the input is not valid FASTA.
    """
    source = fasta_path if fasta_path is not None else "<stdin>"
    handle = open_reference(fasta_path)
    try:
        with handle:
            contigs = list(iter_contigs(handle))
    except FastaFormatError as e:
        raise FastaFormatError(f"{source}: {e}") from e
    except _READ_ERRORS as e:
        raise ReferenceInputError(f"Error reading reference {source}: {e}") from e

    total = sum(c.length for c in contigs)
    logger.info(f"Loaded {len(contigs)} contigs ({total} bases) from {source}")
    return contigs
