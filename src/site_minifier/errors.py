"""Exceptions raised by site-minifier.

Almost nothing in this package raises: bad configuration, unsafe content
and engine failures all degrade to defaults or original content. The
exceptions below cover the cases that indicate an integration bug.
"""

from __future__ import annotations


class MinifierError(Exception):
    """Base class for site-minifier errors."""


class UnknownCompressorTypeError(MinifierError, ValueError):
    """A compressor cache lookup used a type other than css, js or html."""

    def __init__(self, compressor_type: object) -> None:
        super().__init__(f"Unknown compressor type: {compressor_type!r}")
        self.compressor_type = compressor_type


class CompressorConstructionError(MinifierError):
    """An engine refused the options it was constructed with."""

    def __init__(self, kind: str, cause: BaseException) -> None:
        super().__init__(f"Failed to construct {kind} compressor: {cause}")
        self.kind = kind
