"""
Grid Engine for the land-value field.
Lays a regular lat/lng lattice over a bounding box and jitters its nodes.
"""

import math
from typing import Tuple

import numpy as np

from landvalue.geo import BoundingBox, degrees_per_km
from landvalue.models import ConfigError

# Floating point slack so the far edge is included when it lands exactly on a step
_EDGE_EPSILON = 1e-9


class GridEngine:
    """
    Regular sampling lattice over a bounding box.

    Node spacing is `step_km` in both directions, converted to degrees at the
    box's center latitude. Rows run south to north, columns west to east.
    """

    def __init__(self, bounds: BoundingBox, step_km: float):
        if step_km <= 0:
            raise ConfigError(f"Grid step must be > 0, got {step_km}")

        self.bounds = bounds
        self.step_km = step_km

        lng_per_km, lat_per_km = degrees_per_km(bounds.center_latitude)
        self.lat_step = step_km * lat_per_km
        self.lng_step = step_km * lng_per_km

        self.height = self._count(bounds.max_latitude - bounds.min_latitude, self.lat_step)
        self.width = self._count(bounds.max_longitude - bounds.min_longitude, self.lng_step)

    @staticmethod
    def _count(span: float, step: float) -> int:
        return int(math.floor(span / step + _EDGE_EPSILON)) + 1

    @property
    def node_count(self) -> int:
        return self.width * self.height

    def nodes(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return flat (lngs, lats) arrays of the unjittered lattice, row-major."""
        lats = self.bounds.min_latitude + np.arange(self.height) * self.lat_step
        lngs = self.bounds.min_longitude + np.arange(self.width) * self.lng_step
        grid_lat, grid_lng = np.meshgrid(lats, lngs, indexing="ij")
        return grid_lng.ravel(), grid_lat.ravel()

    def jittered_nodes(
        self,
        rng: np.random.Generator,
        jitter_fraction: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Lattice nodes displaced independently on each axis.

        Each offset is uniform in [-jitter_fraction, +jitter_fraction] of a
        cell, so the field does not look mechanically gridded.
        """
        if not 0.0 <= jitter_fraction <= 0.5:
            raise ConfigError(f"Jitter must be within half a cell, got {jitter_fraction}")

        lngs, lats = self.nodes()
        lat_offsets = (rng.random(lats.shape) - 0.5) * 2 * jitter_fraction * self.lat_step
        lng_offsets = (rng.random(lngs.shape) - 0.5) * 2 * jitter_fraction * self.lng_step
        return lngs + lng_offsets, lats + lat_offsets
