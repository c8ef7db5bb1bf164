import logging
from pathlib import Path
from typing import Optional

import numpy as np

from colorcal.utils.file_io import save_image

logger = logging.getLogger(__name__)


class DebugContext:
    """
    Debug image sink with an explicit step counter.

    Each written artifact is named ``<step>_<name>.png`` so files sort in the
    order the pipeline produced them. One context belongs to one calibration
    run and is passed explicitly to every stage that emits debug output.
    """

    def __init__(self, output_dir: Optional[Path] = None, enabled: bool = False):
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.enabled = enabled and self.output_dir is not None
        self._step = 0

    @property
    def step(self) -> int:
        return self._step

    def next_step(self) -> int:
        self._step += 1
        return self._step

    def write(self, name: str, image: np.ndarray) -> Optional[Path]:
        if not self.enabled:
            return None
        path = self.output_dir / f"{self.next_step()}_{name}.png"
        save_image(path, image)
        logger.debug(f"Debug image written: {path}")
        return path


def disabled() -> DebugContext:
    return DebugContext(enabled=False)
