"""Error taxonomy for a single Markdown to PDF conversion.

Every failure a conversion can produce is one of these. The HTTP layer maps
``ValidationError`` to 400 and any ``RenderEngineError`` to 500.
"""
from __future__ import annotations

from typing import Any


class ConversionError(Exception):
    """Base class for conversion failures."""


class ValidationError(ConversionError):
    """The request was malformed. Carries one entry per failing field."""

    def __init__(self, errors: list[dict[str, Any]]):
        self.errors = list(errors)
        fields = ", ".join(".".join(str(p) for p in e.get("path", [])) or "<body>" for e in self.errors)
        super().__init__(f"Invalid request data: {fields}" if fields else "Invalid request data")


class RenderEngineError(ConversionError):
    """The render engine could not turn the document into a PDF."""


class RenderEngineLaunchError(RenderEngineError):
    """The engine process failed to start."""


class RenderLoadError(RenderEngineError):
    """The document could not be loaded into a page."""


class RenderEngineTimeoutError(RenderEngineError):
    def __init__(self, stage: str, timeout: float):
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"Render stage '{stage}' timed out after {timeout:g}s")


class RenderCaptureError(RenderEngineError):
    """The engine failed to produce PDF bytes."""
