"""
college_income/errors.py

Failures the pipeline can stop on. All of them are terminal for a run.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""


class DataUnavailable(PipelineError):
    """A source table could not be fetched or read."""


class SchemaMismatch(PipelineError):
    """An expected column is missing or holds values outside its domain."""

    def __init__(self, message: str, columns=None):
        super().__init__(message)
        self.columns = list(columns or [])


class JoinKeyMismatch(PipelineError):
    """A join matched no rows, usually an identifier-format problem upstream."""


class DegenerateVariance(PipelineError):
    """A class has zero spread in a continuous feature and no variance floor applies."""

    def __init__(self, message: str, cells=None):
        super().__init__(message)
        # list of (class_label, feature) pairs
        self.cells = list(cells or [])
