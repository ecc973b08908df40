"""Circular viewport filter selecting which detected face gets verified."""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

from faceverify.types import Rect, Size, ViewportRegion, rect_center_distance_sq

LOGGER = logging.getLogger("faceverify.tracking.viewport")

STRICT_TOLERANCE = 0.35
RELAXED_TOLERANCE = 0.7


def project_viewport(viewport: ViewportRegion, frame_size: Size) -> Tuple[float, float, float]:
    """Map the viewport circle from surface pixels to frame pixels.

    The mapping goes through normalised [0, 1] coordinates, so preview and
    analysis frames of different resolutions stay aligned.
    """
    frame_w, frame_h = frame_size
    surface_w = max(float(viewport.surface_width), 1.0)
    surface_h = max(float(viewport.surface_height), 1.0)
    cx_norm = viewport.center_x / surface_w
    cy_norm = viewport.center_y / surface_h
    radius_norm = viewport.radius / min(surface_w, surface_h)
    return (
        cx_norm * frame_w,
        cy_norm * frame_h,
        radius_norm * min(float(frame_w), float(frame_h)),
    )


def _inside(face: Rect, center: Tuple[float, float], radius: float, tolerance: float) -> bool:
    distance = math.sqrt(rect_center_distance_sq(face, center))
    return distance <= radius + face.max_side * tolerance


def filter_faces_in_viewport(
    faces: Sequence[Rect],
    viewport: Optional[ViewportRegion],
    frame_size: Size,
    strict_tolerance: float = STRICT_TOLERANCE,
    relaxed_tolerance: float = RELAXED_TOLERANCE,
) -> List[Rect]:
    """Return the faces eligible for verification.

    Pass 1 keeps every face within ``radius + strict_tolerance * max_side``.
    Only if that leaves nothing, pass 2 considers the single face closest to
    the centre and keeps it within ``radius + relaxed_tolerance * max_side``.
    """
    faces = list(faces)
    if viewport is None or not faces:
        return faces

    cx, cy, radius = project_viewport(viewport, frame_size)
    center = (cx, cy)

    filtered = [face for face in faces if _inside(face, center, radius, strict_tolerance)]
    if filtered:
        return filtered

    best = min(faces, key=lambda face: rect_center_distance_sq(face, center))
    if _inside(best, center, radius, relaxed_tolerance):
        LOGGER.debug("Viewport relaxed pass accepted face %s", best)
        return [best]
    LOGGER.debug(
        "No face inside viewport (center=(%.1f, %.1f) radius=%.1f, %d detected)",
        cx,
        cy,
        radius,
        len(faces),
    )
    return []
