"""Wiremap - Conversion code generator for wire-format schemas."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wiremap")
except PackageNotFoundError:
    __version__ = "(local)"
