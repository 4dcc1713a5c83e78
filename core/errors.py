"""
FILE: core/errors.py
---------------------
Error taxonomy shared by all engines.
Every error is fatal: engines raise, the orchestrator lets them propagate,
the CLI reports them and exits.
"""


class BenzenestatError(Exception):
    """Base class for pipeline errors that are not plain I/O failures."""


class DataLoadError(OSError):
    """Input file is missing or unreadable."""


class ParseError(BenzenestatError, ValueError):
    """Malformed row, missing declared column, or unparseable field value."""


class SingularMatrixError(BenzenestatError):
    """Standardized predictor block is rank-deficient."""


class InsufficientDataError(BenzenestatError):
    """Not enough rows to split or to fit the requested model."""
