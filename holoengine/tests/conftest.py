import pytest

from holoengine.engine import HolographicEngine
from holoengine.hologram import generate_synthetic_hologram
from holoengine.service import HolographicService
from holoengine.types import HologramField, ReconstructionConfig
from holoengine.tests.utilities import gaussian_field


ALGORITHM_NAMES = ["fresnel", "angular_spectrum", "convolution"]


@pytest.fixture
def test_config() -> ReconstructionConfig:
    """Plain propagation: no filter and no post-processing."""
    return ReconstructionConfig(
        propagation_distance=1e-3,
        filter="none",
        phase_unwrapping=False,
        noise_reduction=False,
    )


@pytest.fixture
def small_field() -> HologramField:
    return gaussian_field(16, 16)


@pytest.fixture
def synthetic_64() -> HologramField:
    """The 64 x 64 synthetic hologram at 532 nm and 10 um."""
    return generate_synthetic_hologram(64, 64, 532e-9, 10e-6)


@pytest.fixture
def engine() -> HolographicEngine:
    return HolographicEngine()


@pytest.fixture
def service() -> HolographicService:
    return HolographicService()
