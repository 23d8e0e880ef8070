import numpy as np
import pytest

from whitebg_service import config
from whitebg_service.pixel_buffer import PixelGrid


@pytest.fixture
def grid_from():
    return lambda pixels: PixelGrid(np.ascontiguousarray(pixels, dtype=np.uint8))


@pytest.fixture
def settings():
    return config.Settings(
        tolerance=15,
        feather_strength=0.0,
        mask_strategy="labels",
        output_format="PNG",
        debug=False,
    )
