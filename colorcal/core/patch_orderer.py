import logging
import math
from typing import List, Sequence, Tuple

from colorcal.core.types import ColorPatch

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


def find_nearest(points: Sequence[Point], ref: Point) -> Point:
    return min(points, key=lambda p: math.hypot(p[0] - ref[0], p[1] - ref[1]))


def point_to_line_distance(p: Point, line_p1: Point, line_p2: Point) -> float:
    """Perpendicular distance from p to the line through line_p1 and line_p2."""
    dx = line_p2[0] - line_p1[0]
    dy = line_p2[1] - line_p1[1]
    length = math.hypot(dx, dy)
    if length == 0:
        return math.hypot(p[0] - line_p1[0], p[1] - line_p1[1])
    # twice the triangle area over the base
    return abs(dy * p[0] - dx * p[1] + line_p2[0] * line_p1[1] - line_p2[1] * line_p1[0]) / length


class PatchOrderer:
    """
    Raster ordering of detected patches.

    Rows are peeled off one at a time: the current row is the grid_width
    patches closest to the line through the top-left and top-right
    centroids, so rotated or keystoned charts still order correctly.
    Equal distances keep detection order.
    """

    def order(self, patches: List[ColorPatch], grid_width: int, image_width: int) -> List[ColorPatch]:
        if grid_width <= 0:
            raise ValueError("grid_width must be positive")

        remaining = list(enumerate(patches))
        ordered: List[ColorPatch] = []
        row_index = 0
        while remaining:
            points = [p.centroid for _, p in remaining]
            top_left = find_nearest(points, (0.0, 0.0))
            top_right = find_nearest(points, (float(image_width), 0.0))

            by_distance = sorted(
                remaining,
                key=lambda item: (point_to_line_distance(item[1].centroid, top_left, top_right), item[0]),
            )
            row = sorted(by_distance[:grid_width], key=lambda item: (item[1].centroid[0], item[0]))
            ordered.extend(p for _, p in row)

            taken = {idx for idx, _ in row}
            remaining = [item for item in remaining if item[0] not in taken]
            logger.debug(f"Row {row_index}: {[idx for idx, _ in row]}")
            row_index += 1

        return ordered
