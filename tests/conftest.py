"""
Shared fixtures for the render pipeline tests.
"""

import pytest

from fakes import FakeEngineFactory, make_controller
from mdpdf_core.conversion import ConversionService
from mdpdf_core.limiter import RenderLimiter


@pytest.fixture
def engine_factory():
    return FakeEngineFactory()


@pytest.fixture
def controller(engine_factory):
    return make_controller(engine_factory)


@pytest.fixture
def service(controller):
    return ConversionService(controller, RenderLimiter(2), remote_fonts=False)
