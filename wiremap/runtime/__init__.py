"""Runtime support for generated wiremap conversions."""

from .enums import candidate_names as candidate_names
from .enums import enum_from_wire as enum_from_wire
from .enums import enum_to_wire as enum_to_wire
from .enums import match_from_wire as match_from_wire
from .enums import match_to_wire as match_to_wire
from .enums import screaming_snake as screaming_snake
from .errors import ConversionError as ConversionError
from .errors import ConversionPanic as ConversionPanic
from .errors import EnumDriftError as EnumDriftError
from .errors import MissingFieldError as MissingFieldError
from .errors import check_error as check_error
