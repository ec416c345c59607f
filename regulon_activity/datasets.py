"""Small synthetic example dataset for tutorials and tests."""

import numpy as np
import pandas as pd


def get_toy_data(n_samples: int = 24, seed: int = 42) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Generate a toy expression matrix and matching regulator network.

    Three regulators act on twelve genes:
      - T1 activates G01–G04 and represses G05.
      - T2 activates G05–G08.
      - T3 represses G09–G12 and activates G01.

    In the first half of the samples T1 targets are induced and T3's
    repressed targets are lowered, so T1 and T3 score high there; the second
    half is background noise only.

    Args:
        n_samples: Number of samples (split into two equal-ish groups).
        seed: Seed for the background noise.

    Returns:
        Tuple (mat, net): mat is a genes × samples DataFrame, net has columns
        ['source', 'target', 'weight'].
    """
    edges = (
        [("T1", f"G{i:02d}", 1.0) for i in range(1, 5)]
        + [("T1", "G05", -1.0)]
        + [("T2", f"G{i:02d}", 1.0) for i in range(5, 9)]
        + [("T3", f"G{i:02d}", -1.0) for i in range(9, 13)]
        + [("T3", "G01", 0.5)]
    )
    net = pd.DataFrame(edges, columns=["source", "target", "weight"])

    genes = [f"G{i:02d}" for i in range(1, 13)]
    samples = [f"S{i:02d}" for i in range(1, n_samples + 1)]
    rng = np.random.default_rng(seed)
    values = rng.normal(loc=2.0, scale=0.5, size=(len(genes), n_samples))

    active = n_samples // 2
    values[0:4, :active] += 3.0
    values[8:12, :active] -= 1.5

    mat = pd.DataFrame(values, index=genes, columns=samples)
    return mat, net
