"""Exceptions raised by generated conversions."""

from typing import TypeVar


class ConversionError(RuntimeError):
    """Raised when a wire value cannot be converted to its native type."""


class MissingFieldError(ConversionError):
    """Raised when a required wire field is absent.

    Generated per-record error types derive from this class.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing required field: {field}")


class ConversionPanic(RuntimeError):
    """Raised when a wire value violates the conversion contract.

    Not meant to be handled as an ordinary conversion error.
    """


class EnumDriftError(ConversionPanic):
    """Raised when a native and a wire enum no longer share a variant name."""


TError = TypeVar("TError", bound=BaseException)


def check_error(error: BaseException, error_type: type[TError]) -> TError:
    """Ensure an error function produced the record's declared error type."""
    if not isinstance(error, error_type):
        raise TypeError(
            f"error function returned {type(error).__name__}, expected {error_type.__name__}"
        )
    return error
