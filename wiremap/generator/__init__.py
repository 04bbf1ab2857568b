"""Wiremap conversion code generator."""

from .assembler import Assembly as Assembly
from .assembler import assemble as assemble
from .metadata import ConfigurationError as ConfigurationError
from .metadata import GeneratorConfig as GeneratorConfig
from .parser import *
from .types import *
