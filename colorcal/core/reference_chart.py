"""
Reference Chart Data

Linear RGB (0-255) values of the Macbeth ColorChecker Classic 24 patches,
derived from the published sRGB values by removing the sRGB transfer curve.
"""

from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np

from colorcal.utils.file_io import read_json

# ColorChecker Classic 24 patches (6x4 layout), raster order
# Row 1: Dark Skin, Light Skin, Blue Sky, Foliage, Blue Flower, Bluish Green
# Row 2: Orange, Purplish Blue, Moderate Red, Purple, Yellow Green, Orange Yellow
# Row 3: Blue, Green, Red, Yellow, Magenta, Cyan
# Row 4: White, Neutral 8, Neutral 6.5, Neutral 5, Neutral 3.5, Black
RGB_LINEAR_MACBETH: Tuple[Tuple[int, int, int], ...] = (
    (44, 22, 15),
    (138, 78, 57),
    (31, 50, 86),
    (24, 38, 14),
    (60, 55, 112),
    (35, 130, 103),
    (171, 53, 6),
    (20, 27, 97),
    (136, 26, 32),
    (29, 12, 38),
    (86, 128, 13),
    (190, 93, 7),
    (10, 12, 78),
    (16, 76, 17),
    (109, 9, 12),
    (204, 146, 3),
    (127, 24, 77),
    (1, 60, 91),
    (229, 229, 226),
    (147, 147, 147),
    (90, 90, 90),
    (50, 50, 49),
    (23, 23, 23),
    (9, 9, 9),
)

MACBETH_GRID = (6, 4)
NUM_GRAY_PATCHES = 6


class ReferenceChart:
    """
    Ordered reference colors, one per physical patch in raster order.

    The trailing ``num_gray`` entries are the neutral series, stored
    brightest first.
    """

    def __init__(self, colors: Sequence[Sequence[float]], num_gray: int = NUM_GRAY_PATCHES):
        values = np.asarray(colors, dtype=np.float32)
        if values.ndim != 2 or values.shape[1] != 3:
            raise ValueError("Reference colors must be a list of RGB triples")
        if not 0 < num_gray <= len(values):
            raise ValueError(f"Invalid neutral series length: {num_gray}")
        self._colors = values
        self.num_gray = num_gray

    @classmethod
    def macbeth(cls) -> "ReferenceChart":
        return cls(RGB_LINEAR_MACBETH)

    @classmethod
    def from_json(cls, path: Path) -> "ReferenceChart":
        """Load ``{"colors": [[r, g, b], ...], "num_gray": n}`` or a bare list."""
        data = read_json(path)
        if isinstance(data, dict):
            return cls(data["colors"], data.get("num_gray", NUM_GRAY_PATCHES))
        return cls(data)

    def __len__(self) -> int:
        return len(self._colors)

    def __getitem__(self, index: int) -> np.ndarray:
        return self._colors[index]

    @property
    def colors(self) -> np.ndarray:
        return self._colors.copy()

    def normalized(self) -> np.ndarray:
        return self._colors / 255.0

    def gray_values(self) -> List[float]:
        """Neutral series from darkest to brightest (first channel)."""
        tail = self._colors[-self.num_gray :]
        return [float(c[0]) for c in tail[::-1]]
