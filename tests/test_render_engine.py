"""
Unit tests for the render engine controller and the Playwright engine.

The controller is driven with FakeRenderEngine; the Playwright engine is
exercised against mocked playwright objects so no browser is needed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fakes import FAKE_PDF, FakeEngineFactory, make_controller
from mdpdf_core.errors import (
    RenderCaptureError,
    RenderEngineLaunchError,
    RenderEngineTimeoutError,
    RenderLoadError,
)
from mdpdf_core.models import DEFAULT_MARGINS, PageMargins
from mdpdf_core.render_engine import (
    NO_SANDBOX_ARGS,
    PlaywrightRenderEngine,
    RenderEngine,
    RenderState,
)
from mdpdf_core.templating import wrap


DOC = wrap("<h1>Doc</h1>", remote_fonts=False)

FULL_PATH = [
    RenderState.IDLE,
    RenderState.LAUNCHING,
    RenderState.PAGE_LOADING,
    RenderState.AWAITING_FONTS,
    RenderState.CAPTURING,
    RenderState.CLOSED,
]


class TestSuccessfulRender:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_returns_pdf_and_closes(self, controller, engine_factory):
        artifact = await controller.render(DOC)

        assert artifact.data == FAKE_PDF
        assert artifact.byte_length > 0
        engine = engine_factory.engines[0]
        assert engine.calls == ["launch", "load_content", "await_ready", "capture_pdf", "close"]
        assert engine_factory.live == 0
        assert controller.active_sessions == 0

    @pytest.mark.asyncio
    async def test_walks_every_state(self, controller):
        await controller.render(DOC)
        assert controller.last_session.history == FULL_PATH

    @pytest.mark.asyncio
    async def test_loads_full_document_and_uses_a4(self, controller, engine_factory):
        await controller.render(DOC)
        engine = engine_factory.engines[0]
        assert engine.html == DOC.html
        page_format, margins = engine.capture_args
        assert page_format == "A4"
        assert margins == PageMargins(top="0.5in", right="0.75in", bottom="0.5in", left="0.75in")
        assert margins == DEFAULT_MARGINS

    @pytest.mark.asyncio
    async def test_sessions_are_never_reused(self, controller, engine_factory):
        await controller.render(DOC)
        await controller.render(DOC)
        assert engine_factory.call_count == 2
        assert engine_factory.engines[0] is not engine_factory.engines[1]

    def test_fake_satisfies_protocol(self, engine_factory):
        assert isinstance(engine_factory(), RenderEngine)


class TestFontReadiness:
    """Tests for the bounded font wait."""

    @pytest.mark.asyncio
    async def test_font_timeout_degrades(self):
        factory = FakeEngineFactory(delays={"await_ready": 5})
        controller = make_controller(factory, font_timeout=0.05)

        artifact = await controller.render(DOC)

        assert artifact.data == FAKE_PDF
        assert controller.last_session.fonts_degraded
        assert controller.last_session.state == RenderState.CLOSED
        assert factory.live == 0

    @pytest.mark.asyncio
    async def test_font_check_failure_degrades(self):
        factory = FakeEngineFactory(fail_stage="await_ready")
        controller = make_controller(factory)

        artifact = await controller.render(DOC)

        assert artifact.has_pdf_signature
        assert controller.last_session.fonts_degraded


class TestFailures:
    """Tests for stage failures: mapped to the taxonomy, session always closed."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage, expected", [
        ("launch", RenderEngineLaunchError),
        ("load_content", RenderLoadError),
        ("capture_pdf", RenderCaptureError),
    ])
    async def test_stage_failure(self, stage, expected):
        factory = FakeEngineFactory(fail_stage=stage)
        controller = make_controller(factory)

        with pytest.raises(expected):
            await controller.render(DOC)

        engine = factory.engines[0]
        assert engine.calls[-1] == "close"
        assert factory.live == 0
        assert controller.active_sessions == 0
        assert controller.last_session.state == RenderState.FAILED

    @pytest.mark.asyncio
    async def test_launch_timeout_is_launch_error(self):
        factory = FakeEngineFactory(delays={"launch": 5})
        controller = make_controller(factory, launch_timeout=0.05)

        with pytest.raises(RenderEngineLaunchError, match="did not start"):
            await controller.render(DOC)
        assert factory.live == 0

    @pytest.mark.asyncio
    async def test_load_timeout(self):
        factory = FakeEngineFactory(delays={"load_content": 5})
        controller = make_controller(factory, load_timeout=0.05)

        with pytest.raises(RenderEngineTimeoutError) as exc_info:
            await controller.render(DOC)
        assert exc_info.value.stage == "page_load"
        assert factory.live == 0

    @pytest.mark.asyncio
    async def test_capture_timeout_is_fatal(self):
        factory = FakeEngineFactory(delays={"capture_pdf": 5})
        controller = make_controller(factory, capture_timeout=0.05)

        with pytest.raises(RenderEngineTimeoutError) as exc_info:
            await controller.render(DOC)
        assert exc_info.value.stage == "capture"
        assert controller.last_session.state == RenderState.FAILED
        assert factory.live == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pdf", [b"", b"<html>not a pdf</html>"])
    async def test_bad_capture_output(self, pdf):
        factory = FakeEngineFactory(pdf=pdf)
        controller = make_controller(factory)

        with pytest.raises(RenderCaptureError):
            await controller.render(DOC)
        assert factory.live == 0

    @pytest.mark.asyncio
    async def test_factory_failure_is_launch_error(self):
        def broken_factory():
            raise FileNotFoundError("chromium not installed")

        controller = make_controller(broken_factory)
        with pytest.raises(RenderEngineLaunchError, match="chromium not installed"):
            await controller.render(DOC)
        assert controller.active_sessions == 0

    @pytest.mark.asyncio
    async def test_teardown_error_does_not_mask_result(self):
        factory = FakeEngineFactory(close_error=RuntimeError("close failed"))
        controller = make_controller(factory)

        artifact = await controller.render(DOC)

        assert artifact.data == FAKE_PDF
        assert controller.last_session.state == RenderState.CLOSED

    @pytest.mark.asyncio
    async def test_teardown_error_does_not_mask_failure(self):
        factory = FakeEngineFactory(fail_stage="load_content", close_error=RuntimeError("close failed"))
        controller = make_controller(factory)

        with pytest.raises(RenderLoadError):
            await controller.render(DOC)


class TestCancellation:
    """Tests for cancellation mid-render."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", ["launch", "load_content", "await_ready", "capture_pdf"])
    async def test_cancel_tears_down(self, stage):
        factory = FakeEngineFactory(delays={stage: 5})
        controller = make_controller(factory, launch_timeout=10, load_timeout=10, font_timeout=10, capture_timeout=10)

        task = asyncio.ensure_future(controller.render(DOC))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert factory.engines[0].calls[-1] == "close"
        assert factory.live == 0
        assert controller.active_sessions == 0
        assert controller.last_session.state == RenderState.FAILED


def _mock_playwright(pdf_bytes=b"%PDF-1.7 from chromium"):
    page = MagicMock()
    page.set_content = AsyncMock()
    page.evaluate = AsyncMock(return_value="loaded")
    page.pdf = AsyncMock(return_value=pdf_bytes)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()

    return pw, browser, context, page


class TestPlaywrightRenderEngine:
    """Tests for PlaywrightRenderEngine against mocked Playwright."""

    @pytest.mark.asyncio
    @patch("playwright.async_api.async_playwright")
    async def test_full_session(self, mock_async_playwright):
        pw, browser, context, page = _mock_playwright()
        mock_async_playwright.return_value.start = AsyncMock(return_value=pw)
        engine = PlaywrightRenderEngine(sandbox=False, offline=True)
        controller = make_controller(lambda: engine)

        artifact = await controller.render(DOC)

        assert artifact.data == b"%PDF-1.7 from chromium"
        launch_kwargs = pw.chromium.launch.call_args.kwargs
        assert launch_kwargs["headless"] is True
        for flag in NO_SANDBOX_ARGS:
            assert flag in launch_kwargs["args"]
        browser.new_context.assert_awaited_once_with(offline=True)
        page.set_content.assert_awaited_once_with(DOC.html, wait_until="networkidle")
        page.evaluate.assert_awaited_once()
        page.pdf.assert_awaited_once_with(
            format="A4",
            margin={"top": "0.5in", "right": "0.75in", "bottom": "0.5in", "left": "0.75in"},
            print_background=True,
        )
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        assert not engine.is_alive

    @pytest.mark.asyncio
    @patch("playwright.async_api.async_playwright")
    async def test_sandbox_enabled_skips_flags(self, mock_async_playwright):
        pw, _, _, _ = _mock_playwright()
        mock_async_playwright.return_value.start = AsyncMock(return_value=pw)
        engine = PlaywrightRenderEngine(sandbox=True)

        await engine.launch()
        await engine.close()

        launch_kwargs = pw.chromium.launch.call_args.kwargs
        assert launch_kwargs["chromium_sandbox"] is True
        assert "--no-sandbox" not in launch_kwargs["args"]

    @pytest.mark.asyncio
    @patch("playwright.async_api.async_playwright")
    async def test_browser_launch_failure_stops_driver(self, mock_async_playwright):
        pw, _, _, _ = _mock_playwright()
        pw.chromium.launch = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))
        mock_async_playwright.return_value.start = AsyncMock(return_value=pw)
        engine = PlaywrightRenderEngine()
        controller = make_controller(lambda: engine)

        with pytest.raises(RenderEngineLaunchError, match="Executable doesn't exist"):
            await controller.render(DOC)

        pw.stop.assert_awaited_once()
        assert not engine.is_alive

    @pytest.mark.asyncio
    @patch("playwright.async_api.async_playwright")
    async def test_capture_failure_closes_browser(self, mock_async_playwright):
        pw, browser, _, page = _mock_playwright()
        page.pdf = AsyncMock(side_effect=RuntimeError("Target closed"))
        mock_async_playwright.return_value.start = AsyncMock(return_value=pw)
        engine = PlaywrightRenderEngine()
        controller = make_controller(lambda: engine)

        with pytest.raises(RenderCaptureError, match="Target closed"):
            await controller.render(DOC)

        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_before_launch_is_noop(self):
        engine = PlaywrightRenderEngine()
        await engine.close()
        assert not engine.is_alive
