from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ObfusheetError(Exception):
    def __init__(self, message: str, code: int = EXIT_FAILURE) -> None:
        super().__init__(message)
        self.code = code


class ArgumentError(ObfusheetError):
    """Bad command-line usage: missing paths, unknown option values."""


class RunConfigurationError(ObfusheetError):
    """Flags parsed fine but the run cannot proceed: bad seed variable, refused overwrite."""


class LoadError(ObfusheetError):
    """The input file is missing, unreadable, or not a spreadsheet."""


class UnsupportedOutputError(ObfusheetError):
    """The requested output target cannot be written."""


class CellWriteError(ObfusheetError):
    def __init__(self, sheet: str, coordinate: str, cause: Exception) -> None:
        super().__init__(f"Could not write cell {sheet}!{coordinate}: {cause}")
        self.sheet = sheet
        self.coordinate = coordinate
        self.cause = cause
