"""
Canvas export - turn the color plane into a PNG.

Read-only. Used by the capture_canvas tool and the /canvas.png route so a
rendering client can fetch the board without replaying the event log.
"""

import base64
from io import BytesIO

import numpy as np
from PIL import Image

from .canvas import CanvasStore


MAX_SCALE = 8


def colors_to_rgb(colors: np.ndarray) -> np.ndarray:
    """Unpack 0xRRGGBB integers into an (h, w, 3) uint8 array."""
    colors = colors.astype(np.uint32)
    rgb = np.empty(colors.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = (colors >> 16) & 0xFF
    rgb[..., 1] = (colors >> 8) & 0xFF
    rgb[..., 2] = colors & 0xFF
    return rgb


def render_image(canvas: CanvasStore, scale: int = 1, region=None) -> Image.Image:
    """
    Render the board (or a region of it) as a PIL image.

    Args:
        canvas: Store to read from
        scale: Integer upscale factor (nearest neighbour), 1..MAX_SCALE
        region: Optional (x0, y0, x1, y1) half-open rectangle
    """
    if not (1 <= scale <= MAX_SCALE):
        raise ValueError(f"scale must be between 1 and {MAX_SCALE}")

    colors = canvas.region(*region) if region else canvas.colors()
    image = Image.fromarray(colors_to_rgb(colors))
    if scale > 1:
        image = image.resize((image.width * scale, image.height * scale), Image.Resampling.NEAREST)
    return image


def render_png(canvas: CanvasStore, scale: int = 1, region=None) -> bytes:
    buffer = BytesIO()
    render_image(canvas, scale=scale, region=region).save(buffer, format="PNG")
    return buffer.getvalue()


def render_png_base64(canvas: CanvasStore, scale: int = 1, region=None) -> str:
    return base64.b64encode(render_png(canvas, scale=scale, region=region)).decode("utf-8")
