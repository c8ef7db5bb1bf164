"""
Image Operations

Capability interface over the vision primitives used by chart detection and
black level estimation, with the OpenCV implementation used by default.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

import cv2
import numpy as np

Contour = np.ndarray  # (N, 1, 2) int32 points, OpenCV layout


class ImageOps(ABC):
    @abstractmethod
    def scale(self, image: np.ndarray, factor: float) -> np.ndarray:
        """Multiply with saturation to the image dtype."""

    @abstractmethod
    def gaussian_blur(self, image: np.ndarray, ksize: int) -> np.ndarray:
        ...

    @abstractmethod
    def adaptive_threshold_inv(self, image: np.ndarray, block_size: int, offset: float) -> np.ndarray:
        """Mean adaptive threshold, inverse binary (dark pixels become 255)."""

    @abstractmethod
    def morph_close(self, bw: np.ndarray, radius: int) -> np.ndarray:
        """Closing with a cross element of the given radius."""

    @abstractmethod
    def dilate(self, bw: np.ndarray, radius: int) -> np.ndarray:
        """Dilation with a square element of the given radius."""

    @abstractmethod
    def connected_components(self, bw: np.ndarray, connectivity: int = 8) -> Tuple[int, np.ndarray, np.ndarray]:
        """Return (count, labels, stats) with stats rows (left, top, width, height, area)."""

    @abstractmethod
    def find_contours(self, bw: np.ndarray, straighten_factor: float) -> List[Contour]:
        """All contours (tree retrieval), each simplified with epsilon = factor * perimeter."""

    @abstractmethod
    def contour_area(self, contour: Contour) -> float:
        ...

    @abstractmethod
    def centroid(self, contour: Contour) -> Tuple[float, float]:
        """Image moment centroid."""

    @abstractmethod
    def min_area_rect_size(self, contour: Contour) -> Tuple[float, float]:
        ...

    @abstractmethod
    def is_convex(self, contour: Contour) -> bool:
        ...

    @abstractmethod
    def min_enclosing_circle(self, contour: Contour) -> Tuple[Tuple[float, float], float]:
        ...

    @abstractmethod
    def bounding_rect(self, contour: Contour) -> Tuple[int, int, int, int]:
        ...

    @abstractmethod
    def fill_contour(self, shape: Tuple[int, int], contour: Contour) -> np.ndarray:
        """uint8 mask with the contour interior set to 255."""

    @abstractmethod
    def histogram(self, image: np.ndarray, max_value: int) -> np.ndarray:
        """Counts for integer bins 0..max_value."""


class CvImageOps(ImageOps):
    def scale(self, image: np.ndarray, factor: float) -> np.ndarray:
        if image.dtype == np.uint8:
            return cv2.convertScaleAbs(image, alpha=factor)
        return cv2.multiply(image, np.full_like(image, factor))

    def gaussian_blur(self, image: np.ndarray, ksize: int) -> np.ndarray:
        return cv2.GaussianBlur(image, (ksize, ksize), 0)

    def adaptive_threshold_inv(self, image: np.ndarray, block_size: int, offset: float) -> np.ndarray:
        return cv2.adaptiveThreshold(
            image, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY_INV, block_size, offset
        )

    def _element(self, shape: int, radius: int) -> np.ndarray:
        size = 2 * radius + 1
        return cv2.getStructuringElement(shape, (size, size), (radius, radius))

    def morph_close(self, bw: np.ndarray, radius: int) -> np.ndarray:
        return cv2.morphologyEx(bw, cv2.MORPH_CLOSE, self._element(cv2.MORPH_CROSS, radius))

    def dilate(self, bw: np.ndarray, radius: int) -> np.ndarray:
        return cv2.dilate(bw, self._element(cv2.MORPH_RECT, radius))

    def connected_components(self, bw: np.ndarray, connectivity: int = 8) -> Tuple[int, np.ndarray, np.ndarray]:
        num, labels, stats, _ = cv2.connectedComponentsWithStats(bw, connectivity=connectivity)
        return num, labels, stats

    def find_contours(self, bw: np.ndarray, straighten_factor: float) -> List[Contour]:
        contours, _ = cv2.findContours(bw, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
        return [cv2.approxPolyDP(c, straighten_factor * cv2.arcLength(c, True), True) for c in contours]

    def contour_area(self, contour: Contour) -> float:
        return float(cv2.contourArea(contour))

    def centroid(self, contour: Contour) -> Tuple[float, float]:
        mu = cv2.moments(contour)
        if mu["m00"] == 0:
            pts = contour.reshape(-1, 2).astype(np.float64)
            return float(pts[:, 0].mean()), float(pts[:, 1].mean())
        return mu["m10"] / mu["m00"], mu["m01"] / mu["m00"]

    def min_area_rect_size(self, contour: Contour) -> Tuple[float, float]:
        _, (w, h), _ = cv2.minAreaRect(contour)
        return float(w), float(h)

    def is_convex(self, contour: Contour) -> bool:
        return bool(cv2.isContourConvex(contour))

    def min_enclosing_circle(self, contour: Contour) -> Tuple[Tuple[float, float], float]:
        (x, y), r = cv2.minEnclosingCircle(contour)
        return (float(x), float(y)), float(r)

    def bounding_rect(self, contour: Contour) -> Tuple[int, int, int, int]:
        x, y, w, h = cv2.boundingRect(contour)
        return int(x), int(y), int(w), int(h)

    def fill_contour(self, shape: Tuple[int, int], contour: Contour) -> np.ndarray:
        mask = np.zeros(shape[:2], dtype=np.uint8)
        cv2.drawContours(mask, [contour], 0, 255, thickness=cv2.FILLED)
        return mask

    def histogram(self, image: np.ndarray, max_value: int) -> np.ndarray:
        hist = cv2.calcHist([image.astype(np.float32)], [0], None, [max_value + 1], [0, max_value + 1])
        return hist.reshape(-1)
