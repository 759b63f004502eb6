"""
Field Synthesizer: procedural land-value field over a city.

Produces a FieldCollection of jittered, noisy price samples plus one
influence-zone polygon per facility. The whole collection is generated in
one pass; changing attractors or facilities means calling
synthesize_field() again.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from landvalue.config import FieldConfig
from landvalue.geo import BoundingBox, circle_ring, haversine_km
from landvalue.grid import GridEngine
from landvalue.models import (
    Attractor,
    ExclusionRegion,
    Facility,
    FieldCollection,
    GeoPoint,
    InfluenceZone,
    ValueSample,
    format_price,
)
from landvalue.scoring import PriceModel

log = logging.getLogger(__name__)


def normalize_weight(price, cap_price: float):
    """min(price, cap) / cap; monotonic non-decreasing in price, within [0, 1]."""
    return np.minimum(np.maximum(price, 0), cap_price) / cap_price


def build_influence_zones(facilities: Sequence[Facility], vertices: int = 64) -> Tuple[InfluenceZone, ...]:
    """One closed circle polygon per facility, for display only."""
    return tuple(
        InfluenceZone(
            facility_name=fac.name,
            kind=fac.kind,
            color=fac.color,
            boost=fac.boost,
            ring=circle_ring(fac.location, fac.radius_km, vertices),
        )
        for fac in facilities
    )


def _excluded_mask(
    lngs: np.ndarray,
    lats: np.ndarray,
    prices: np.ndarray,
    exclusions: Sequence[ExclusionRegion],
) -> np.ndarray:
    mask = np.zeros(prices.shape, dtype=bool)
    for region in exclusions:
        dist = haversine_km(lngs, lats, region.center.lng, region.center.lat)
        mask |= (dist <= region.radius_km) & (prices < region.min_price)
    return mask


def synthesize_field(
    bounds: BoundingBox,
    grid_step_km: Optional[float],
    attractors: Sequence[Attractor],
    facilities: Sequence[Facility],
    config: Optional[FieldConfig] = None,
    exclusions: Sequence[ExclusionRegion] = (),
    seed: Optional[int] = None,
) -> FieldCollection:
    """
    Generate the land-value field.

    Args:
        bounds: Area to cover
        grid_step_km: Lattice spacing; None uses config.grid_step_km
        attractors: Economic centers (combined by max)
        facilities: Amenities (combined by sum, radius-bounded)
        config: Price floor, discard threshold, noise, jitter; defaults if None
        exclusions: Unbuildable regions with their own price threshold
        seed: RNG seed; overrides config.seed. Same seed, same field.

    Returns:
        Immutable FieldCollection
    """
    config = config or FieldConfig()
    step = grid_step_km if grid_step_km is not None else config.grid_step_km
    seed = seed if seed is not None else config.seed
    rng = np.random.default_rng(seed)

    grid = GridEngine(bounds, step)
    lngs, lats = grid.jittered_nodes(rng, config.jitter_fraction)

    model = PriceModel(attractors, facilities, config.floor_price)
    raw = model.raw_price(lngs, lats)
    noise = rng.uniform(config.noise_min, config.noise_max, size=raw.shape)
    prices = np.floor(raw * noise)

    keep = prices >= config.discard_price
    keep &= ~_excluded_mask(lngs, lats, prices, exclusions)
    weights = normalize_weight(prices, config.cap_price)

    samples = []
    for lng, lat, price, weight in zip(lngs[keep], lats[keep], prices[keep], weights[keep]):
        price = int(price)
        samples.append(ValueSample(
            id=len(samples),
            location=GeoPoint(float(lng), float(lat)),
            price=price,
            normalized_weight=float(weight),
            label=format_price(price),
        ))

    zones = build_influence_zones(facilities, config.zone_vertices)

    log.info(
        f"Synthesized {len(samples)} samples from {grid.node_count} nodes "
        f"({grid.width}x{grid.height} @ {step}km), {len(zones)} influence zones"
    )
    return FieldCollection(
        samples=tuple(samples),
        zones=zones,
        facilities=tuple(facilities),
        nodes_visited=grid.node_count,
        seed=seed,
    )
