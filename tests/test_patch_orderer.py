import cv2
import numpy as np
import pytest

from colorcal.core.patch_orderer import PatchOrderer, find_nearest, point_to_line_distance
from colorcal.core.types import ColorPatch


def _patch(x, y):
    return ColorPatch(mask=np.zeros((4, 4), dtype=np.uint8), centroid=(float(x), float(y)))


def _sheared_grid(cols=6, rows=4, pitch=50.0, shear=0.05):
    """Raster-ordered centroids of a grid whose rows slope downward to the right."""
    pts = []
    for r in range(rows):
        for c in range(cols):
            x = 100.0 + pitch * c
            y = 100.0 + pitch * r + shear * (x - 100.0)
            pts.append((x, y))
    return pts


# Test Case 1: geometry helpers
def test_point_to_line_distance():
    assert point_to_line_distance((5.0, 3.0), (0.0, 0.0), (10.0, 0.0)) == pytest.approx(3.0)
    assert point_to_line_distance((0.0, 0.0), (1.0, 1.0), (3.0, 3.0)) == pytest.approx(0.0)


def test_point_to_line_distance_degenerate_line():
    assert point_to_line_distance((3.0, 4.0), (0.0, 0.0), (0.0, 0.0)) == pytest.approx(5.0)


def test_find_nearest():
    pts = [(10.0, 10.0), (1.0, 2.0), (5.0, 0.0)]
    assert find_nearest(pts, (0.0, 0.0)) == (1.0, 2.0)


# Test Case 2: shuffled, sheared or keystoned grid comes back in raster order
def test_order_shuffled_sheared_grid():
    expected = _sheared_grid()
    patches = [_patch(x, y) for x, y in expected]
    perm = np.random.default_rng(0).permutation(len(patches))
    shuffled = [patches[i] for i in perm]

    ordered = PatchOrderer().order(shuffled, 6, 800)
    assert [p.centroid for p in ordered] == expected


@pytest.mark.parametrize("tilt", [0.0, 20.0, 40.0])
def test_order_shuffled_perspective_grid(tilt):
    grid = np.array(_sheared_grid(shear=0.0), dtype=np.float32)
    src = np.float32([[100, 100], [350, 100], [350, 250], [100, 250]])
    # keystone: bottom edge narrowed, top-right corner dropped
    dst = np.float32([[100, 100], [350, 100 + tilt / 4], [350 - tilt, 250], [100 + tilt, 250]])
    warped = cv2.perspectiveTransform(grid.reshape(-1, 1, 2), cv2.getPerspectiveTransform(src, dst))
    expected = [(float(x), float(y)) for x, y in warped.reshape(-1, 2)]

    patches = [_patch(x, y) for x, y in expected]
    perm = np.random.default_rng(0).permutation(len(patches))
    ordered = PatchOrderer().order([patches[i] for i in perm], 6, 800)
    assert [p.centroid for p in ordered] == expected


# Test Case 3: output is a permutation of the input
def test_order_is_permutation():
    patches = [_patch(x, y) for x, y in _sheared_grid()]
    ordered = PatchOrderer().order(patches[::-1], 6, 800)
    assert len(ordered) == len(patches)
    assert {id(p) for p in ordered} == {id(p) for p in patches}


# Test Case 4: partial last row
def test_order_partial_last_row():
    pts = _sheared_grid(cols=3, rows=2, shear=0.0)[:5]
    ordered = PatchOrderer().order([_patch(x, y) for x, y in reversed(pts)], 3, 400)
    assert [p.centroid for p in ordered] == pts


# Test Case 5: equal x within a row keeps detection order
def test_order_tie_keeps_detection_order():
    a = _patch(10, 10)
    b = _patch(10, 10)
    ordered = PatchOrderer().order([a, b], 2, 100)
    assert ordered[0] is a
    assert ordered[1] is b


def test_order_empty():
    assert PatchOrderer().order([], 6, 800) == []


def test_order_invalid_grid_width():
    with pytest.raises(ValueError):
        PatchOrderer().order([_patch(0, 0)], 0, 100)
