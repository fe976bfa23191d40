"""Conversion service: validate, render Markdown, template, capture PDF."""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .config import REMOTE_FONTS
from .errors import ConversionError, RenderEngineError
from .limiter import RenderLimiter
from .markdown_transform import to_html
from .models import (
    DEFAULT_MARGINS,
    DEFAULT_PAGE_FORMAT,
    ConversionRequest,
    PageMargins,
    PdfArtifact,
    RenderedDocument,
    parse_request,
)
from .render_engine import RenderEngineController
from .templating import wrap


logger = logging.getLogger(__name__)


class ConversionService:
    """Markdown in, PDF out, one independent pipeline per call.

    Validation happens before anything touches the render engine. The
    optional limiter is the only state shared between calls.
    """

    def __init__(
        self,
        controller: RenderEngineController,
        limiter: Optional[RenderLimiter] = None,
        *,
        transformer: Callable[[str], str] = to_html,
        templater: Optional[Callable[[str], RenderedDocument]] = None,
        page_format: str = DEFAULT_PAGE_FORMAT,
        margins: PageMargins = DEFAULT_MARGINS,
        remote_fonts: bool = REMOTE_FONTS,
    ):
        self.controller = controller
        self.limiter = limiter
        self._transformer = transformer
        self._templater = templater or (lambda fragment: wrap(fragment, remote_fonts=remote_fonts))
        self.page_format = page_format
        self.margins = margins

    async def convert(self, request: ConversionRequest | Mapping[str, Any]) -> PdfArtifact:
        validated = parse_request(request)
        logger.info("Converting %d chars of Markdown to %s", len(validated.markdown), validated.filename)

        try:
            if self.limiter is None:
                return await self._render(validated)
            async with self.limiter.slot():
                return await self._render(validated)
        except ConversionError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure converting %s", validated.filename)
            raise RenderEngineError(f"Internal error: {exc}") from exc

    async def _render(self, request: ConversionRequest) -> PdfArtifact:
        fragment = self._transformer(request.markdown)
        document = self._templater(fragment)
        return await self.controller.render(document, self.page_format, self.margins)
