"""Headless render-engine sessions: HTML in, PDF bytes out.

A session is one engine process plus one page, created for a single
conversion and torn down before ``render`` returns or raises, including when
the caller is cancelled. The concrete engine sits behind the ``RenderEngine``
protocol so Chromium can be swapped for another HTML-to-PDF backend.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .config import (
    CAPTURE_TIMEOUT_SECONDS,
    CHROMIUM_SANDBOX,
    CLOSE_TIMEOUT_SECONDS,
    FONT_TIMEOUT_SECONDS,
    LAUNCH_TIMEOUT_SECONDS,
    LOAD_TIMEOUT_SECONDS,
    OFFLINE_RENDERING,
)
from .errors import (
    RenderCaptureError,
    RenderEngineError,
    RenderEngineLaunchError,
    RenderEngineTimeoutError,
    RenderLoadError,
)
from .models import DEFAULT_MARGINS, DEFAULT_PAGE_FORMAT, PDF_SIGNATURE, PageMargins, PdfArtifact, RenderedDocument


logger = logging.getLogger(__name__)


class RenderState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    PAGE_LOADING = "page_loading"
    AWAITING_FONTS = "awaiting_fonts"
    CAPTURING = "capturing"
    CLOSED = "closed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RenderState.CLOSED, RenderState.FAILED})


@runtime_checkable
class RenderEngine(Protocol):
    """What the controller needs from a headless renderer."""

    @property
    def is_alive(self) -> bool: ...

    async def launch(self) -> None: ...

    async def load_content(self, html: str) -> None: ...

    async def await_ready(self) -> None: ...

    async def capture_pdf(self, page_format: str, margins: PageMargins) -> bytes: ...

    async def close(self) -> None: ...


# Flags for running Chromium in containers and other constrained hosts.
CHROMIUM_ARGS = (
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--no-first-run",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)
NO_SANDBOX_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")

_FONTS_READY_JS = """async () => {
    if (document.fonts && document.fonts.ready) {
        await document.fonts.ready;
        return document.fonts.status;
    }
    return "unsupported";
}"""


class PlaywrightRenderEngine:
    """Chromium via Playwright: one browser, one throwaway context, one page."""

    def __init__(self, *, headless: bool = True, sandbox: bool = CHROMIUM_SANDBOX, offline: bool = OFFLINE_RENDERING):
        self._headless = headless
        self._sandbox = sandbox
        self._offline = offline
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    @property
    def is_alive(self) -> bool:
        return self._playwright is not None or self._browser is not None

    def _require_page(self) -> Any:
        if self._page is None:
            raise RenderEngineError("Render engine has no open page")
        return self._page

    async def launch(self) -> None:
        # Imported here so the module loads without the browser stack installed.
        from playwright.async_api import async_playwright

        args = list(CHROMIUM_ARGS)
        if not self._sandbox:
            args.extend(NO_SANDBOX_ARGS)

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._headless,
            chromium_sandbox=self._sandbox,
            args=args,
            timeout=0,
        )
        # A fresh context is an in-memory profile: no cookies, cache or
        # storage survive the session.
        self._context = await self._browser.new_context(offline=self._offline)
        self._page = await self._context.new_page()
        # Deadlines are enforced by the controller.
        self._page.set_default_timeout(0)

    async def load_content(self, html: str) -> None:
        await self._require_page().set_content(html, wait_until="networkidle")

    async def await_ready(self) -> None:
        status = await self._require_page().evaluate(_FONTS_READY_JS)
        logger.debug("document.fonts status: %s", status)

    async def capture_pdf(self, page_format: str, margins: PageMargins) -> bytes:
        return await self._require_page().pdf(
            format=page_format,
            margin=margins.as_dict(),
            print_background=True,
        )

    async def close(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None

        if context is not None:
            try:
                await context.close()
            except Exception:
                logger.debug("Closing browser context failed", exc_info=True)
        if browser is not None:
            try:
                await browser.close()
            except Exception:
                logger.debug("Closing browser failed", exc_info=True)
        if playwright is not None:
            # Stopping the driver also kills any browser it still owns.
            await playwright.stop()


class RenderSession:
    """State of one engine instance over a single render."""

    def __init__(self, session_id: int, engine: RenderEngine):
        self.session_id = session_id
        self.engine = engine
        self.state = RenderState.IDLE
        self.history: list[RenderState] = [RenderState.IDLE]
        self.fonts_degraded = False

    def transition(self, state: RenderState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Render session {self.session_id} is already {self.state.value}")
        logger.debug("Render session %d: %s -> %s", self.session_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)


EngineFactory = Callable[[], RenderEngine]


class RenderEngineController:
    """Runs one render session per call and always tears it down.

    Stages run in order: launch, load content, wait for fonts, capture. Each
    stage is bounded. A font wait that runs out is not an error; the PDF is
    captured with whatever fonts loaded.
    """

    def __init__(
        self,
        engine_factory: EngineFactory = PlaywrightRenderEngine,
        *,
        launch_timeout: float = LAUNCH_TIMEOUT_SECONDS,
        load_timeout: float = LOAD_TIMEOUT_SECONDS,
        font_timeout: float = FONT_TIMEOUT_SECONDS,
        capture_timeout: float = CAPTURE_TIMEOUT_SECONDS,
        close_timeout: float = CLOSE_TIMEOUT_SECONDS,
    ):
        self._engine_factory = engine_factory
        self.launch_timeout = launch_timeout
        self.load_timeout = load_timeout
        self.font_timeout = font_timeout
        self.capture_timeout = capture_timeout
        self.close_timeout = close_timeout
        self._ids = itertools.count(1)
        self._active = 0
        self.last_session: Optional[RenderSession] = None

    @property
    def active_sessions(self) -> int:
        return self._active

    async def render(
        self,
        doc: RenderedDocument,
        page_format: str = DEFAULT_PAGE_FORMAT,
        margins: PageMargins = DEFAULT_MARGINS,
    ) -> PdfArtifact:
        try:
            engine = self._engine_factory()
        except Exception as exc:
            raise RenderEngineLaunchError(f"Failed to create render engine: {exc}") from exc

        session = RenderSession(next(self._ids), engine)
        self.last_session = session
        self._active += 1
        failed = True
        try:
            data = await self._run(session, doc, page_format, margins)
            failed = False
        finally:
            try:
                await self._teardown(session)
            except BaseException:
                failed = True
                raise
            finally:
                session.transition(RenderState.FAILED if failed else RenderState.CLOSED)
                self._active -= 1

        logger.info(
            "Render session %d produced %d bytes%s",
            session.session_id,
            len(data),
            " (fonts degraded)" if session.fonts_degraded else "",
        )
        return PdfArtifact(data=data)

    async def _run(self, session: RenderSession, doc: RenderedDocument, page_format: str, margins: PageMargins) -> bytes:
        engine = session.engine

        session.transition(RenderState.LAUNCHING)
        try:
            await asyncio.wait_for(engine.launch(), self.launch_timeout)
        except asyncio.TimeoutError as exc:
            raise RenderEngineLaunchError(f"Render engine did not start within {self.launch_timeout:g}s") from exc
        except RenderEngineError:
            raise
        except Exception as exc:
            raise RenderEngineLaunchError(f"Failed to launch render engine: {exc}") from exc

        session.transition(RenderState.PAGE_LOADING)
        try:
            await asyncio.wait_for(engine.load_content(doc.html), self.load_timeout)
        except asyncio.TimeoutError as exc:
            raise RenderEngineTimeoutError("page_load", self.load_timeout) from exc
        except RenderEngineError:
            raise
        except Exception as exc:
            raise RenderLoadError(f"Failed to load document: {exc}") from exc

        session.transition(RenderState.AWAITING_FONTS)
        try:
            await asyncio.wait_for(engine.await_ready(), self.font_timeout)
        except asyncio.TimeoutError:
            session.fonts_degraded = True
            logger.warning(
                "Render session %d: fonts not ready after %.1fs, capturing with available fonts",
                session.session_id,
                self.font_timeout,
            )
        except Exception as exc:
            session.fonts_degraded = True
            logger.warning("Render session %d: font readiness check failed: %s", session.session_id, exc)

        session.transition(RenderState.CAPTURING)
        try:
            data = await asyncio.wait_for(engine.capture_pdf(page_format, margins), self.capture_timeout)
        except asyncio.TimeoutError as exc:
            raise RenderEngineTimeoutError("capture", self.capture_timeout) from exc
        except RenderEngineError:
            raise
        except Exception as exc:
            raise RenderCaptureError(f"PDF capture failed: {exc}") from exc

        if not data:
            raise RenderCaptureError("Render engine returned an empty PDF")
        if not bytes(data).startswith(PDF_SIGNATURE):
            raise RenderCaptureError("Render engine output is not a PDF")
        return bytes(data)

    async def _close_engine(self, session: RenderSession) -> None:
        try:
            await asyncio.wait_for(session.engine.close(), self.close_timeout)
        except asyncio.TimeoutError:
            logger.error("Render session %d: engine did not close within %.1fs", session.session_id, self.close_timeout)
        except Exception:
            logger.exception("Render session %d: engine teardown failed", session.session_id)

    async def _teardown(self, session: RenderSession) -> None:
        # Closing must finish even if the caller is cancelled meanwhile; the
        # cancellation is re-raised once the engine is gone.
        task = asyncio.ensure_future(self._close_engine(session))
        cancelled = False
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                cancelled = True
        if cancelled:
            raise asyncio.CancelledError()
