"""
Color Matrix Solver

Regresses the 3x3 color correction matrix mapping measured patch colors to
the reference chart colors, both normalized to [0, 1].
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from colorcal.core.reference_chart import ReferenceChart
from colorcal.core.types import ColorPatch, CountMismatchError, DimensionMismatchError

logger = logging.getLogger(__name__)


@dataclass
class SolverConfig:
    num_iterations: int = 100000
    step_size: float = 0.1
    log_every: int = 0  # 0 disables objective logging


def solve_linear_regression(
    input_dim: int,
    output_dim: int,
    inputs: Sequence[Sequence[float]],
    outputs: Sequence[Sequence[float]],
    num_iterations: int,
    step_size: float,
    log_every: int = 0,
) -> np.ndarray:
    """
    Least-squares fit of outputs ~ A @ inputs by batch gradient descent.

    A starts at zero and takes num_iterations steps on the mean squared
    error. Returns A with shape (output_dim, input_dim).
    """
    x = np.asarray(inputs, dtype=np.float64).reshape(-1, input_dim)
    y = np.asarray(outputs, dtype=np.float64).reshape(-1, output_dim)
    if len(x) != len(y):
        raise CountMismatchError(f"{len(x)} inputs vs {len(y)} outputs")
    if len(x) == 0:
        raise ValueError("Linear regression needs at least one sample")

    n = float(len(x))
    # gradient of 1/(2n) * sum |A x - y|^2 is (A X^T X - Y^T X) / n
    xtx = x.T @ x / n
    ytx = y.T @ x / n
    a = np.zeros((output_dim, input_dim), dtype=np.float64)
    for it in range(num_iterations):
        a -= step_size * (a @ xtx - ytx)
        if log_every and it % log_every == 0:
            objective = 0.5 * float(np.mean(np.sum((x @ a.T - y) ** 2, axis=1)))
            logger.debug(f"iteration {it}: objective={objective:.8f}")
    return a


class ColorMatrixSolver:
    def __init__(self, config: Optional[SolverConfig] = None, reference: Optional[ReferenceChart] = None):
        self.config = config or SolverConfig()
        self.reference = reference or ReferenceChart.macbeth()

    def solve(self, patches: List[ColorPatch]) -> np.ndarray:
        """
        CCM from raster-ordered, measured patches.

        Raises:
            CountMismatchError: patch count differs from the reference chart
            DimensionMismatchError: regression did not produce a 3x3 matrix
        """
        if len(patches) != len(self.reference):
            raise CountMismatchError(
                f"{len(patches)} patches cannot be matched to {len(self.reference)} reference colors"
            )
        inputs = [p.median for p in patches]
        outputs = self.reference.normalized()

        ccm = solve_linear_regression(
            3, 3, inputs, outputs, self.config.num_iterations, self.config.step_size, self.config.log_every
        )
        if ccm.ndim != 2 or ccm.shape[0] != 3 or ccm.shape[0] != ccm.shape[1]:
            raise DimensionMismatchError(f"Expected a 3x3 CCM, got shape {ccm.shape}")

        logger.info(f"CCM:\n{np.array2string(ccm, precision=4)}")
        return ccm.astype(np.float32)
