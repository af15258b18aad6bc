"""Palette extraction from sampled pixels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np

from ..io.models import Color, ColorWithArea, Pixel
from .oklab import rgb_to_oklch

SIMPLE_CLUSTERS = 5
AREA_CLUSTERS = 8
MAX_ITERATIONS = 10
CONVERGENCE_SHIFT = 1.0

HUE_BIN_COUNT = 12
HUE_BIN_SIZE = 360.0 / HUE_BIN_COUNT
NEUTRAL_BIN = HUE_BIN_COUNT
NEUTRAL_CHROMA = 0.15
SIGNIFICANCE = 0.02

PixelsLike = np.ndarray | Sequence[Pixel]


def as_pixel_array(pixels: PixelsLike) -> np.ndarray:
    """Return *pixels* as an ``(N, 3)`` uint8 array."""
    array = np.asarray(pixels)
    if array.size == 0:
        return np.zeros((0, 3), dtype=np.uint8)
    if array.ndim != 2 or array.shape[1] < 3:
        array = array.reshape(-1, array.shape[-1])
    return np.ascontiguousarray(array[:, :3], dtype=np.uint8)


def hsv_saturation(pixels: PixelsLike) -> np.ndarray:
    """HSV saturation ``(max - min) / max`` for each pixel, 0 for black."""
    array = as_pixel_array(pixels).astype(np.float64)
    high = array.max(axis=1)
    low = array.min(axis=1)
    return np.divide(high - low, high, out=np.zeros_like(high), where=high > 0)


def most_saturated(pixels: PixelsLike) -> Color:
    """Return the first pixel with the highest HSV saturation."""
    array = as_pixel_array(pixels)
    if len(array) == 0:
        return Color(0, 0, 0)
    r, g, b = array[int(np.argmax(hsv_saturation(array)))]
    return Color(int(r), int(g), int(b))


@dataclass(frozen=True, slots=True)
class ClusterSnapshot:
    """One generation of k-means state.

    ``labels`` is the assignment computed from the previous generation's
    centroids; ``centroids`` are the means recomputed from that assignment.
    """

    generation: int
    centroids: tuple[Pixel, ...]
    labels: np.ndarray | None
    shift: float

    @property
    def converged(self) -> bool:
        return self.shift <= CONVERGENCE_SHIFT

    def counts(self) -> np.ndarray:
        if self.labels is None:
            return np.zeros(len(self.centroids), dtype=np.int64)
        return np.bincount(self.labels, minlength=len(self.centroids))


def seed_centroids(pixels: np.ndarray, k: int) -> tuple[Pixel, ...]:
    """Pick *k* seeds at a fixed stride through *pixels*."""
    step = len(pixels) // k
    return tuple(
        (int(pixels[i * step][0]), int(pixels[i * step][1]), int(pixels[i * step][2]))
        for i in range(k)
    )


def kmeans_step(pixels: np.ndarray, previous: ClusterSnapshot) -> ClusterSnapshot:
    """Assign every pixel to its nearest centroid and recompute the means."""
    data = pixels.astype(np.float64)
    centroids = np.array(previous.centroids, dtype=np.float64)
    distances = ((data[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
    labels = np.argmin(distances, axis=1)

    updated: list[Pixel] = []
    shift = 0.0
    for index, old in enumerate(centroids):
        members = data[labels == index]
        if len(members) == 0:
            updated.append(previous.centroids[index])
            continue
        mean = np.floor(members.mean(axis=0) + 0.5)
        shift = max(shift, float(np.linalg.norm(mean - old)))
        updated.append((int(mean[0]), int(mean[1]), int(mean[2])))

    return ClusterSnapshot(previous.generation + 1, tuple(updated), labels, shift)


def iterate_kmeans(
    pixels: PixelsLike,
    k: int,
    max_iterations: int = MAX_ITERATIONS,
) -> Iterator[ClusterSnapshot]:
    """Yield successive k-means generations until convergence or the iteration cap."""
    array = as_pixel_array(pixels)
    if len(array) == 0:
        raise ValueError("Cannot cluster an empty pixel sample")
    k = max(1, min(k, len(array)))
    snapshot = ClusterSnapshot(0, seed_centroids(array, k), None, float("inf"))
    for _ in range(max_iterations):
        snapshot = kmeans_step(array, snapshot)
        yield snapshot
        if snapshot.converged:
            break


def kmeans(pixels: PixelsLike, k: int, max_iterations: int = MAX_ITERATIONS) -> ClusterSnapshot:
    """Run k-means to completion and return the final generation."""
    final: ClusterSnapshot | None = None
    for final in iterate_kmeans(pixels, k, max_iterations=max_iterations):
        pass
    if final is None:
        raise ValueError("k-means requires at least one iteration")
    return final


def simple_palette(pixels: PixelsLike, k: int = SIMPLE_CLUSTERS) -> list[ColorWithArea]:
    """Cluster *pixels* and report each cluster's mean color and pixel share."""
    array = as_pixel_array(pixels)
    result = kmeans(array, k)
    counts = result.counts()
    total = float(len(array))
    colors = [
        ColorWithArea(Color(*centroid), float(count) / total)
        for centroid, count in zip(result.centroids, counts)
        if count > 0
    ]
    return sorted(colors, key=lambda item: item.area, reverse=True)


def area_palette(pixels: PixelsLike, k: int = AREA_CLUSTERS) -> list[ColorWithArea]:
    """Cluster *pixels* and report each cluster's most saturated member.

    Averaging a vivid cluster with nearby near-white or near-black pixels
    washes it out, so the representative is chosen from the members once the
    assignment is fixed.
    """
    array = as_pixel_array(pixels)
    result = kmeans(array, k)
    total = float(len(array))
    colors = []
    for index in range(len(result.centroids)):
        members = array[result.labels == index]
        if len(members) == 0:
            continue
        colors.append(ColorWithArea(most_saturated(members), len(members) / total))
    return sorted(colors, key=lambda item: item.area, reverse=True)


def hue_bin_labels(pixels: PixelsLike, neutral_chroma: float = NEUTRAL_CHROMA) -> np.ndarray:
    """Return the hue bin (0-11) or the neutral bin (12) for each pixel."""
    array = as_pixel_array(pixels)
    if len(array) == 0:
        return np.zeros(0, dtype=np.int64)
    lch = rgb_to_oklch(array)
    bins = np.floor(lch[:, 2] / HUE_BIN_SIZE).astype(np.int64) % HUE_BIN_COUNT
    return np.where(lch[:, 1] < neutral_chroma, NEUTRAL_BIN, bins)


def hue_binned_palette(
    pixels: PixelsLike,
    neutral_chroma: float = NEUTRAL_CHROMA,
    significance: float = SIGNIFICANCE,
) -> list[ColorWithArea]:
    """Extract one color per significant 30-degree Oklab hue bin.

    Pixels in different bins are never mixed, so distinct hues such as lime
    (~128 degrees) and cyan (~168 degrees) survive as separate colors. Each
    bin holding at least *significance* of the sample contributes its most
    saturated pixel, with the bin's share as area.
    """
    array = as_pixel_array(pixels)
    if len(array) == 0:
        return []
    labels = hue_bin_labels(array, neutral_chroma)
    total = float(len(array))
    colors = []
    for index in range(HUE_BIN_COUNT + 1):
        members = array[labels == index]
        share = len(members) / total
        if share == 0 or share < significance:
            continue
        colors.append(ColorWithArea(most_saturated(members), share))
    return sorted(colors, key=lambda item: item.area, reverse=True)
