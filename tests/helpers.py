from io import BytesIO

import numpy as np
from PIL import Image

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


def solid(width, height, color=WHITE):
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[...] = color
    return pixels


def ring_with_black_center():
    """4x4 white ring around a 2x2 opaque black block."""
    pixels = solid(4, 4, WHITE)
    pixels[1:3, 1:3] = BLACK
    return pixels


def enclosed_white_square():
    """
    20x20 white canvas with a thick black box; the inside of the box is white
    but cut off from the border by the box walls.
    """
    pixels = solid(20, 20, WHITE)
    pixels[4:16, 4:16] = BLACK
    pixels[6:14, 6:14] = WHITE
    return pixels


def png_bytes(pixels):
    buf = BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


def decode_png(data):
    with Image.open(BytesIO(data)) as image:
        return np.array(image.convert("RGBA"))
