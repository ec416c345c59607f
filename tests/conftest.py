"""
Shared fixtures for the regulon_activity tests.
"""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def small_mat():
    """3 genes × 2 samples with hand-checkable values."""
    return pd.DataFrame(
        {"s1": [1.0, 2.0, 3.0], "s2": [4.0, 5.0, 6.0]},
        index=["g1", "g2", "g3"],
    )


@pytest.fixture
def small_net():
    """
    A: g1 (+1), g2 (+2)
    B: g2 (-1), g3 (+0.5), g4 (+3, not measured)
    C: g1 (+1) only
    """
    return pd.DataFrame(
        [
            ("A", "g1", 1.0),
            ("A", "g2", 2.0),
            ("B", "g2", -1.0),
            ("B", "g3", 0.5),
            ("B", "g4", 3.0),
            ("C", "g1", 1.0),
        ],
        columns=["source", "target", "weight"],
    )


@pytest.fixture
def random_data():
    """40 genes × 6 samples with three overlapping regulons."""
    rng = np.random.default_rng(0)
    genes = [f"G{i:02d}" for i in range(40)]
    mat = pd.DataFrame(
        rng.normal(size=(40, 6)),
        index=genes,
        columns=[f"S{i}" for i in range(6)],
    )
    edges = []
    for k, src in enumerate(["R1", "R2", "R3"]):
        for g in genes[k * 5: k * 5 + 10]:
            edges.append((src, g, float(rng.choice([-1.0, 1.0]) * rng.uniform(0.5, 2.0))))
    net = pd.DataFrame(edges, columns=["source", "target", "weight"])
    return mat, net
