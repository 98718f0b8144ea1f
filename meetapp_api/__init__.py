"""Meeting application assembler service."""

__version__ = "0.1.0"
