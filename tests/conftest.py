"""Shared fixtures: a synthetic dataset shaped like the ENB2012 building table."""

import itertools
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

# relative_compactness, surface_area, wall_area, roof_area, overall_height
SHAPES = [
    (0.98, 514.5, 294.0, 110.25, 7.0),
    (0.90, 563.5, 318.5, 122.50, 7.0),
    (0.86, 588.0, 294.0, 147.00, 7.0),
    (0.82, 612.5, 318.5, 147.00, 7.0),
    (0.79, 637.0, 343.0, 147.00, 7.0),
    (0.76, 661.5, 416.5, 122.50, 7.0),
    (0.74, 686.0, 245.0, 220.50, 3.5),
    (0.71, 710.5, 269.5, 220.50, 3.5),
    (0.69, 735.0, 294.0, 220.50, 3.5),
    (0.66, 759.5, 318.5, 220.50, 3.5),
    (0.64, 784.0, 343.0, 220.50, 3.5),
    (0.62, 808.5, 367.5, 220.50, 3.5),
]

GLAZING = [(0.0, 0)] + [
    (area, dist) for area in (0.10, 0.25, 0.40) for dist in (1, 2, 3, 4, 5)
]


def make_buildings(noise: float = 0.5, seed: int = 0) -> pd.DataFrame:
    """Full factorial of shapes x orientations x glazing with a linear heating load."""
    rows = []
    for shape, orientation, (area, dist) in itertools.product(SHAPES, (2, 3, 4, 5), GLAZING):
        rows.append(shape + (orientation, area, dist))

    df = pd.DataFrame(rows, columns=[
        "relative_compactness", "surface_area", "wall_area", "roof_area",
        "overall_height", "orientation", "glazing_area", "glazing_area_distribution",
    ])

    rng = np.random.default_rng(seed)
    df["heating_load"] = (
        4.0
        + 3.0 * df["overall_height"]
        + 20.0 * df["glazing_area"]
        + 0.02 * df["wall_area"]
        + rng.normal(0, noise, len(df))
    )
    return df


@pytest.fixture
def buildings():
    """768 raw building records."""
    return make_buildings()


@pytest.fixture
def coerced_buildings(buildings):
    from heatload.data_loader import coerce_types
    return coerce_types(buildings)
