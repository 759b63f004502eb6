"""
Land Price Scoring

Implements the two additive layers of the synthetic price model:
- Macro price: distance decay from economic attractors (dominant center wins)
- Facility bonus: radius-bounded linear boosts from nearby amenities
"""

from typing import Sequence, Union

import numpy as np

from landvalue.geo import haversine_km
from landvalue.models import Attractor, Facility

ArrayLike = Union[float, np.ndarray]


def attractor_influence(attractor: Attractor, distance: ArrayLike) -> ArrayLike:
    """base_price * exp(-decay_rate * distance_km)."""
    return attractor.base_price * np.exp(-attractor.decay_rate * np.asarray(distance))


def macro_price(
    lngs: ArrayLike,
    lats: ArrayLike,
    attractors: Sequence[Attractor],
    floor_price: float,
) -> np.ndarray:
    """
    Strongest attractor influence at each point, never below floor_price.

    Attractors combine by maximum, not sum: the closest dominant center sets
    the price, distant centers do not stack.
    """
    result = np.full(np.shape(lngs), float(floor_price))
    for attractor in attractors:
        dist = haversine_km(lngs, lats, attractor.location.lng, attractor.location.lat)
        result = np.maximum(result, attractor_influence(attractor, dist))
    return result


def facility_bonus(
    lngs: ArrayLike,
    lats: ArrayLike,
    facilities: Sequence[Facility],
) -> np.ndarray:
    """Sum of boost * (1 - dist/radius) over facilities strictly within radius."""
    result = np.zeros(np.shape(lngs))
    for fac in facilities:
        dist = haversine_km(lngs, lats, fac.location.lng, fac.location.lat)
        inside = dist < fac.radius_km
        result = result + np.where(inside, fac.boost * (1.0 - dist / fac.radius_km), 0.0)
    return result


class PriceModel:
    """
    Deterministic part of the price field (no noise, no discard rule).

    Usage:
        model = PriceModel(attractors, facilities, floor_price=25000)
        raw = model.raw_price(lngs, lats)
    """

    def __init__(
        self,
        attractors: Sequence[Attractor],
        facilities: Sequence[Facility],
        floor_price: float,
    ):
        self.attractors = tuple(attractors)
        self.facilities = tuple(facilities)
        self.floor_price = floor_price

    def raw_price(self, lngs: ArrayLike, lats: ArrayLike) -> np.ndarray:
        """macro_price + facility_bonus, vectorized over the inputs."""
        return (
            macro_price(lngs, lats, self.attractors, self.floor_price)
            + facility_bonus(lngs, lats, self.facilities)
        )
