"""
Exception hierarchy for analyze_gc.
Every fatal condition of a run maps onto one of these classes so that the
command-line entry point can report it and exit with a non-zero status.
"""


class AnalyzeGcError(Exception):
    """Base class for all analyze_gc errors."""


class ConfigurationError(AnalyzeGcError, ValueError):
    """Invalid run configuration (threshold, read lengths, threads)."""


class ReferenceInputError(AnalyzeGcError):
    """The reference sequence could not be read."""


class FastaFormatError(ReferenceInputError, ValueError):
    """The reference sequence is not well-formed FASTA."""


class WorkUnitError(AnalyzeGcError):
    """
    A (contig, read length) work unit failed.
    The whole run is abandoned, partial genome statistics are never reported.
    """

    def __init__(self, contig_name: str, read_length: int, cause: BaseException):
        self.contig_name = contig_name
        self.read_length = read_length
        self.cause = cause
        super().__init__(f"Work unit failed for contig '{contig_name}' at read length {read_length}: {cause}")


class AnalysisAborted(AnalyzeGcError):
    """The run was stopped by an external abort request."""
