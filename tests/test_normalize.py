from pathlib import Path
import sys

import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mockupdiff.raster import PixelBuffer
from mockupdiff.utils import normalize_pair


def _solid(width, height, rgb):
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :] = rgb
    return pixels


def test_pair_is_scaled_to_smaller_extent():
    pair = normalize_pair(_solid(400, 300, (255, 255, 255)), _solid(200, 600, (0, 0, 0)))
    assert (pair.width, pair.height) == (200, 300)
    assert pair.design.size == pair.page.size == (200, 300)
    assert pair.source_sizes == ((400, 300), (200, 600))
    # scaled, not cropped: a solid color stays solid
    assert (pair.design.rgb() == 255).all()
    assert (pair.page.rgb() == 0).all()


def test_same_size_inputs_are_reused():
    buffer = PixelBuffer.from_array(_solid(50, 40, (1, 2, 3)))
    pair = normalize_pair(buffer, buffer)
    assert pair.design is buffer
    assert pair.page is buffer
