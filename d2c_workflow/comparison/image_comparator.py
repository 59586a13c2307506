"""Image comparator — normalizes two rasters to one canvas and scores their pixel match."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Callable, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from d2c_workflow.comparison.pixel_diff import DIFF_COLOR, PixelDiffResult, pixel_diff
from d2c_workflow.errors import ImageDecodeError, MalformedComparisonResult
from d2c_workflow.models.comparison import ImageCompareResult, success_rate

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes]
PixelDiffFn = Callable[..., PixelDiffResult]


def decode_image(source: ImageSource, name: str = "image") -> np.ndarray:
    """Decode a path, encoded bytes, or base64 text into an RGBA array.

    Raises ImageDecodeError naming ``name`` when the source can't be read.
    """
    try:
        data = _read_source(source)
        with Image.open(io.BytesIO(data)) as img:
            rgba = img.convert("RGBA")
            arr = np.array(rgba, dtype=np.uint8)
    except (OSError, UnidentifiedImageError, ValueError, binascii.Error) as e:
        raise ImageDecodeError(name, e) from e
    arr.setflags(write=False)
    return arr


def _read_source(source: ImageSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, Path):
        return source.read_bytes()

    text = source.strip()
    if text.startswith("data:"):
        _, _, text = text.partition(",")
        return base64.b64decode(text, validate=True)

    path = Path(text)
    try:
        if path.is_file():
            return path.read_bytes()
    except OSError:
        # Long base64 strings can exceed the filesystem's name limit
        pass
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error:
        raise FileNotFoundError(f"No such file and not base64 data: {text[:80]}")


def pad_to_canvas(img: np.ndarray, width: int, height: int) -> np.ndarray:
    """Place ``img`` at the top-left of a fully transparent canvas."""
    h, w = img.shape[:2]
    if (w, h) == (width, height):
        return img
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    canvas[:h, :w] = img
    return canvas


def _coverage_mismatch(shape1: tuple, shape2: tuple, width: int, height: int) -> np.ndarray:
    """Canvas positions covered by exactly one of the two source images."""
    covered1 = np.zeros((height, width), dtype=bool)
    covered1[:shape1[0], :shape1[1]] = True
    covered2 = np.zeros((height, width), dtype=bool)
    covered2[:shape2[0], :shape2[1]] = True
    return covered1 ^ covered2


def compare_images(
    original: ImageSource,
    rendered: ImageSource,
    threshold: float = 0.1,
    generate_diff: bool = False,
    diff_fn: PixelDiffFn = pixel_diff,
) -> ImageCompareResult:
    """Compare the design image against the rendered screenshot.

    Images of different sizes are padded onto a canvas of the element-wise
    maximum size. There is no scaling or alignment, so padded area covered by
    only one image always counts as different.
    """
    if not 0 <= threshold <= 1:
        raise ValueError(f"threshold must be within [0, 1], got {threshold}")

    img1 = decode_image(original, "original")
    img2 = decode_image(rendered, "rendered")

    height = max(img1.shape[0], img2.shape[0])
    width = max(img1.shape[1], img2.shape[1])
    if img1.shape != img2.shape:
        logger.info(
            "Image sizes differ (%dx%d vs %dx%d); padding to %dx%d",
            img1.shape[1], img1.shape[0], img2.shape[1], img2.shape[0], width, height,
        )
    canvas1 = pad_to_canvas(img1, width, height)
    canvas2 = pad_to_canvas(img2, width, height)
    total = width * height

    result = diff_fn(canvas1, canvas2, threshold=threshold, output=generate_diff)
    if not 0 <= result.diff_pixels <= total:
        raise MalformedComparisonResult(
            f"Pixel diff reported {result.diff_pixels} differing pixels out of {total}"
        )

    diff_pixels = result.diff_pixels
    output = result.output
    if img1.shape != img2.shape:
        mask = np.asarray(result.mask, dtype=bool) | _coverage_mismatch(img1.shape, img2.shape, width, height)
        diff_pixels = int(mask.sum())
        if output is not None:
            output = output.copy()
            output[mask] = DIFF_COLOR

    diff_image = None
    if generate_diff and output is not None:
        diff_image = encode_png(output)

    rate = success_rate(total - diff_pixels, total)
    logger.debug("Image compare: %d/%d pixels differ (%.2f%% match)", diff_pixels, total, rate)
    return ImageCompareResult(
        success_rate=rate,
        total_pixels=total,
        diff_pixels=diff_pixels,
        width=width,
        height=height,
        diff_image=diff_image,
    )


def encode_png(rgba: np.ndarray) -> str:
    """Encode an RGBA array as base64 PNG text."""
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")
