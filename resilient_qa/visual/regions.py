"""Connected-component extraction over a pixel difference map."""

from __future__ import annotations

import logging
from collections import deque

import numpy as np

from resilient_qa.models.visual import DifferenceRegion

logger = logging.getLogger(__name__)


def extract_difference_regions(diff_map: np.ndarray, min_area: int = 100) -> list[DifferenceRegion]:
    """Group adjacent differing pixels into bounded regions.

    Breadth-first 4-connected flood fill over a flat row-major copy of the
    mask. Each component is reported with its bounding box and density
    (changed pixels / bounding-box area); components whose bounding box is
    smaller than ``min_area`` are dropped. Regions are returned in scan
    order of their first pixel.
    """
    if diff_map.ndim != 2:
        raise ValueError(f"difference map must be 2-D, got shape {diff_map.shape}")

    height, width = diff_map.shape
    different = diff_map.astype(bool).ravel()
    visited = np.zeros(width * height, dtype=bool)
    regions: list[DifferenceRegion] = []

    for start in np.flatnonzero(different):
        if visited[start]:
            continue

        visited[start] = True
        queue = deque([int(start)])
        min_x = max_x = int(start) % width
        min_y = max_y = int(start) // width
        pixel_count = 0

        while queue:
            idx = queue.popleft()
            x, y = idx % width, idx // width
            pixel_count += 1
            if x < min_x:
                min_x = x
            elif x > max_x:
                max_x = x
            if y < min_y:
                min_y = y
            elif y > max_y:
                max_y = y

            neighbours = []
            if x > 0:
                neighbours.append(idx - 1)
            if x < width - 1:
                neighbours.append(idx + 1)
            if y > 0:
                neighbours.append(idx - width)
            if y < height - 1:
                neighbours.append(idx + width)

            for n in neighbours:
                if different[n] and not visited[n]:
                    visited[n] = True
                    queue.append(n)

        box_w = max_x - min_x + 1
        box_h = max_y - min_y + 1
        area = box_w * box_h
        if area < min_area:
            continue
        regions.append(
            DifferenceRegion(
                x=min_x,
                y=min_y,
                width=box_w,
                height=box_h,
                difference_score=pixel_count / area,
            )
        )

    logger.debug("Extracted %d difference regions (min area %d)", len(regions), min_area)
    return regions
