from __future__ import annotations

from functools import lru_cache
from typing import Sequence, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from expressface.config import FONT_LIST


@lru_cache(maxsize=128)
def _load_font(font_path: str, font_size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(font_path, font_size)


@lru_cache(maxsize=64)
def _get_best_font(font_size: int) -> ImageFont.ImageFont:
    """Return a cached font instance, first loadable entry of FONT_LIST."""
    for p in FONT_LIST:
        try:
            return _load_font(p, int(font_size))
        except OSError:
            continue
    return ImageFont.load_default()


def draw_texts(
    img: np.ndarray,
    items: Sequence[Tuple[str, Tuple[int, int], int, Tuple[int, int, int]]],
    anchor: str = "ms",
) -> None:
    """Draw unicode texts onto one frame with a single PIL conversion.

    Args:
        img: OpenCV BGR image, modified in-place.
        items: sequence of (text, (x, y), font_size_px, bgr_color)
        anchor: PIL text anchor; "ms" centers horizontally on the baseline.
    """
    if img is None or len(items) == 0:
        return

    pil_img = Image.fromarray(cv2.cvtColor(img, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(pil_img)

    for text, org, font_size, bgr in items:
        font = _get_best_font(int(font_size))
        # PIL uses RGB
        rgb_color = (int(bgr[2]), int(bgr[1]), int(bgr[0]))
        try:
            draw.text(tuple(org), str(text), font=font, fill=rgb_color, anchor=anchor)
        except ValueError:
            # Bitmap default font does not support anchors.
            draw.text(tuple(org), str(text), font=font, fill=rgb_color)

    img[:] = cv2.cvtColor(np.array(pil_img), cv2.COLOR_RGB2BGR)


def draw_box(img: np.ndarray, xyxy: Sequence[float], color=(246, 130, 59), thickness: int = 3) -> None:
    x1, y1, x2, y2 = [int(round(v)) for v in xyxy]
    cv2.rectangle(img, (x1, y1), (x2, y2), color, thickness, cv2.LINE_AA)


def draw_points(img: np.ndarray, points: Sequence[Tuple[float, float]], color=(212, 182, 6), radius: int = 4) -> None:
    for x, y in points:
        cv2.circle(img, (int(round(x)), int(round(y))), radius, color, -1, cv2.LINE_AA)
