"""Perceptual pixel-difference capability.

Compares two equal-sized RGBA buffers with the YIQ colour delta used by
pixelmatch: semi-transparent pixels are blended onto white, and a pixel
differs when its weighted YIQ distance exceeds ``35215 * threshold**2``.
Anti-aliasing detection is not performed.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

import numpy as np

# Maximum possible YIQ delta between two colours.
MAX_YIQ_DELTA = 35215

DIFF_COLOR = (255, 0, 0, 255)


class PixelDiffResult(NamedTuple):
    diff_pixels: int
    mask: np.ndarray  # bool, shape (height, width)
    output: Optional[np.ndarray]  # uint8 RGBA visualization


def _blend_white(rgba: np.ndarray) -> np.ndarray:
    rgb = rgba[..., :3].astype(np.float64)
    alpha = rgba[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _yiq(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    y = r * 0.29889531 + g * 0.58662247 + b * 0.11448223
    i = r * 0.59597799 - g * 0.27417610 - b * 0.32180189
    q = r * 0.21147017 - g * 0.52261711 + b * 0.31114694
    return y, i, q


def color_delta(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Squared perceptual distance per pixel between two RGBA arrays."""
    y1, i1, q1 = _yiq(_blend_white(img1))
    y2, i2, q2 = _yiq(_blend_white(img2))
    dy, di, dq = y1 - y2, i1 - i2, q1 - q2
    return 0.5053 * dy * dy + 0.299 * di * di + 0.1957 * dq * dq


def gray_output(img: np.ndarray, alpha: float = 0.1) -> np.ndarray:
    """Faded grayscale rendering of ``img`` used as the diff background."""
    y, _, _ = _yiq(_blend_white(img))
    val = 255.0 + (y - 255.0) * alpha
    out = np.empty(img.shape[:2] + (4,), dtype=np.uint8)
    out[..., :3] = np.clip(val, 0, 255).astype(np.uint8)[..., None]
    out[..., 3] = 255
    return out


def pixel_diff(
    img1: np.ndarray,
    img2: np.ndarray,
    threshold: float = 0.1,
    output: bool = False,
) -> PixelDiffResult:
    """Count pixels that differ perceptually between two RGBA arrays."""
    if img1.shape != img2.shape:
        raise ValueError(f"Image sizes do not match: {img1.shape} vs {img2.shape}")
    if img1.ndim != 3 or img1.shape[2] != 4:
        raise ValueError(f"Expected RGBA arrays, got shape {img1.shape}")

    identical = np.all(img1 == img2, axis=2)
    max_delta = MAX_YIQ_DELTA * threshold * threshold
    mask = ~identical & (color_delta(img1, img2) > max_delta)

    out = None
    if output:
        out = gray_output(img1)
        out[mask] = DIFF_COLOR
    return PixelDiffResult(int(mask.sum()), mask, out)
