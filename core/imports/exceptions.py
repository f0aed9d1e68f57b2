from typing import Optional


class FileProcessingError(ValueError):
    """Base class for problems turning an upload into a table"""


class UnsupportedFileTypeError(FileProcessingError):
    """Raised when the file extension is not csv, xlsx or xls"""


class EmptyFileError(FileProcessingError):
    """Raised when a file yields no rows or no headers"""


class FileParseError(FileProcessingError):
    """Raised when the file content cannot be read or decoded"""


class ImportPipelineError(RuntimeError):
    """Raised when a storage call fails mid-import.

    Rows before ``row_number`` have been written; ``outcome`` holds
    the counts accumulated up to the failure.
    """

    def __init__(self, message: str, outcome, row_number: Optional[int] = None):
        super().__init__(message)
        self.outcome = outcome
        self.row_number = row_number


class InvalidStepTransitionError(RuntimeError):
    """Raised when an import session is moved to an illegal step"""


class MappingIncompleteError(InvalidStepTransitionError):
    """Raised when processing is requested without a resolved mapping"""
