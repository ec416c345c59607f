"""Regulon construction from a regulator → target → weight network.

A regulon is the set of target features attributed to one regulator
(transcription factor or pathway), each with a signed mode-of-regulation
weight: positive for activation, negative for inhibition.

The network arrives as a flat edge table. Scoring needs it as a sparse
regulator × feature matrix aligned to the expression matrix rows:

  1. Select and rename the source / target / weight columns.
  2. Reject repeated (source, target) edges and all-zero-weight regulons.
  3. Drop edges whose target is not measured in the matrix.
  4. Drop regulators left with fewer than min_n measured targets.
  5. Divide each surviving regulon's weights by their L1 norm, so that one
     sparse product gives the weighted mean for every regulator at once.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
import scipy.sparse as sp

from .utils.checks import InvalidInputError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Regulons:
    """Sparse regulator × feature weight structure.

    Attributes:
        sources: Regulator names, one per row of weights (sorted).
        features: Feature names, one per column of weights (matrix row order).
        weights: CSR matrix (n_sources × n_features) of L1-normalised weights.
        sizes: Number of measured targets per regulator.
    """

    sources: list
    features: list
    weights: sp.csr_matrix
    sizes: np.ndarray

    @property
    def n_sources(self) -> int:
        return len(self.sources)

    def targets(self, source: str) -> dict[str, float]:
        """Return the measured targets of one regulator with normalised weights."""
        row = self.sources.index(source)
        start, end = self.weights.indptr[row], self.weights.indptr[row + 1]
        return {
            self.features[j]: float(w)
            for j, w in zip(self.weights.indices[start:end], self.weights.data[start:end])
        }


def rename_net(
    net: pd.DataFrame,
    source: str = "source",
    target: str = "target",
    weight: Optional[str] = "weight",
) -> pd.DataFrame:
    """Select the network columns and rename them to source/target/weight.

    Args:
        net: Edge table.
        source: Column holding regulator names.
        target: Column holding target feature names.
        weight: Column holding signed weights. None gives every edge weight 1.

    Returns:
        DataFrame with columns ['source', 'target', 'weight'].

    Raises:
        InvalidInputError: If a column is missing or weights are not numeric.
    """
    required = [source, target] + ([weight] if weight else [])
    missing = [c for c in required if c not in net.columns]
    if missing:
        raise InvalidInputError(f"Network missing columns: {missing}")

    df = pd.DataFrame({
        "source": net[source].astype(str).values,
        "target": net[target].astype(str).values,
    })
    if weight:
        w = pd.to_numeric(net[weight], errors="coerce")
        if w.isna().any():
            raise InvalidInputError(f"Network column '{weight}' has missing or non-numeric weights.")
        df["weight"] = w.astype(float).values
    else:
        df["weight"] = 1.0
    return df


def check_net(net: pd.DataFrame) -> None:
    """Validate a renamed network (see rename_net).

    Raises:
        InvalidInputError: If an edge is repeated or a regulator has only
            zero weights.
    """
    dups = net.duplicated(subset=["source", "target"])
    if dups.any():
        example = net.loc[dups, ["source", "target"]].head(3).values.tolist()
        raise InvalidInputError(f"Network contains repeated edges, e.g. {example}")

    l1 = net["weight"].abs().groupby(net["source"]).sum()
    zero = l1.index[l1 == 0].tolist()
    if zero:
        raise InvalidInputError(f"Regulons with all-zero weights: {zero}")


def filter_by_min_n(net: pd.DataFrame, features: Sequence, min_n: int) -> pd.DataFrame:
    """Keep edges to measured features from regulators with >= min_n of them.

    Args:
        net: Renamed network (source, target, weight).
        features: Feature IDs present in the expression matrix.
        min_n: Minimum number of measured targets per regulator.

    Returns:
        Filtered network.
    """
    net = net[net["target"].isin(set(features))]
    counts = net.groupby("source")["target"].transform("count")
    return net[counts >= min_n].copy()


def build_regulons(net: pd.DataFrame, features: Sequence, min_n: int = 5) -> Regulons:
    """Build the sparse regulon structure used by the scorer.

    Args:
        net: Renamed network (source, target, weight); see rename_net.
        features: Feature IDs in matrix row order.
        min_n: Minimum number of measured targets per regulator.

    Returns:
        Regulons aligned to features. May hold zero sources.

    Raises:
        InvalidInputError: If the network fails check_net, or a surviving
            regulator has only zero weights among its measured targets.
    """
    check_net(net)
    features = list(features)
    kept = filter_by_min_n(net, features, min_n)
    log.info(
        "%d of %d sources have >= %d targets in the matrix",
        kept["source"].nunique(), net["source"].nunique(), min_n,
    )

    l1 = kept["weight"].abs().groupby(kept["source"]).sum()
    zero = l1.index[l1 == 0].tolist()
    if zero:
        raise InvalidInputError(f"Regulons with all-zero weights among measured targets: {zero}")

    sources = sorted(kept["source"].unique().tolist())
    src_idx = {s: i for i, s in enumerate(sources)}
    feat_idx = {f: j for j, f in enumerate(features)}

    rows = kept["source"].map(src_idx).to_numpy(dtype=np.int64)
    cols = kept["target"].map(feat_idx).to_numpy(dtype=np.int64)
    vals = (kept["weight"] / kept["source"].map(l1)).to_numpy(dtype=float)

    weights = sp.csr_matrix((vals, (rows, cols)), shape=(len(sources), len(features)), dtype=float)
    weights.sort_indices()
    sizes = np.diff(weights.indptr)
    return Regulons(sources=sources, features=features, weights=weights, sizes=sizes)


def regulon_correlation(regulons: Regulons) -> pd.DataFrame:
    """Pairwise Pearson correlation between regulon weight vectors.

    Regulons sharing most of their targets with the same signs score almost
    identically and are hard to tell apart. This reports every regulator pair
    with the correlation of their weight vectors over the matrix features.

    Args:
        regulons: Output of build_regulons().

    Returns:
        Long-format DataFrame with columns ['source_a', 'source_b', 'corr'],
        sorted by absolute correlation, highest first.
    """
    columns = ["source_a", "source_b", "corr"]
    if regulons.n_sources < 2:
        return pd.DataFrame(columns=columns)

    with np.errstate(divide="ignore", invalid="ignore"):
        corr = np.corrcoef(regulons.weights.toarray())
    i, j = np.triu_indices(regulons.n_sources, k=1)
    sources = np.asarray(regulons.sources)
    df = pd.DataFrame({"source_a": sources[i], "source_b": sources[j], "corr": corr[i, j]})
    order = df["corr"].abs().sort_values(ascending=False, kind="stable").index
    return df.loc[order].reset_index(drop=True)
