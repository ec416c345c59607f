"""Scoring regulator activity directly on AnnData objects.

AnnData stores expression as cells × genes, the transpose of the features ×
samples layout used by run_wmean(). These helpers transpose without
densifying sparse matrices, score every cell, and store the wide activity
matrices in `adata.obsm` so they travel with the cell metadata:

  obsm['wmean_estimate']  raw wmean          (cells × sources)
  obsm['wmean_norm']      norm_wmean         (only with permutations)
  obsm['wmean_corr']      corr_wmean         (only with permutations)
  obsm['wmean_pvals']     empirical p-values (only with permutations)
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd
import scanpy as sc
import scipy.sparse as sp

from .results import pivot_scores
from .wmean import run_wmean

log = logging.getLogger(__name__)

OBSM_KEYS = {
    "wmean": "wmean_estimate",
    "norm_wmean": "wmean_norm",
    "corr_wmean": "wmean_corr",
}


def matrix_from_anndata(
    adata: sc.AnnData,
    layer: Optional[str] = None,
    use_raw: bool = False,
) -> tuple:
    """Extract a features × cells matrix from an AnnData object.

    Args:
        adata: AnnData with cells × genes expression.
        layer: Layer to use instead of X.
        use_raw: Use adata.raw.X and adata.raw.var_names.

    Returns:
        Tuple (values, features, cells) accepted by run_wmean(). Sparse input
        stays sparse (CSR).
    """
    if use_raw:
        if adata.raw is None:
            raise ValueError("use_raw=True but adata.raw is not set.")
        X, features = adata.raw.X, adata.raw.var_names
    else:
        X = adata.layers[layer] if layer is not None else adata.X
        features = adata.var_names

    values = sp.csr_matrix(X.T) if sp.issparse(X) else np.asarray(X).T
    return values, features.astype(str).tolist(), adata.obs_names.astype(str).tolist()


def score_anndata(
    adata: sc.AnnData,
    net: pd.DataFrame,
    layer: Optional[str] = None,
    use_raw: bool = False,
    **kwargs,
) -> pd.DataFrame:
    """Run wmean on every cell of an AnnData object and store the results.

    Args:
        adata: AnnData with cells × genes expression. Modified in place.
        net: Network table (see run_wmean()).
        layer: Layer to score instead of X.
        use_raw: Score adata.raw instead of X.
        **kwargs: Passed to run_wmean() (min_n, times, seed, ...).

    Returns:
        The long-format Result Table.
    """
    results = run_wmean(matrix_from_anndata(adata, layer=layer, use_raw=use_raw), net, **kwargs)
    if results.empty:
        return results

    for statistic, key in OBSM_KEYS.items():
        if (results["statistic"] == statistic).any():
            adata.obsm[key] = pivot_scores(results, statistic).loc[adata.obs_names]
    if results["p_value"].notna().any():
        adata.obsm["wmean_pvals"] = pivot_scores(results, "norm_wmean", value="p_value").loc[adata.obs_names]

    log.info("Stored %s in adata.obsm", [k for k in adata.obsm.keys() if k.startswith("wmean_")])
    return results


def get_acts(adata: sc.AnnData, obsm_key: str = "wmean_estimate") -> sc.AnnData:
    """Build an AnnData of activities from a stored obsm matrix.

    Args:
        adata: AnnData previously passed through score_anndata().
        obsm_key: Key of the activity matrix in adata.obsm.

    Returns:
        AnnData with cells × sources activities and a copy of adata.obs.

    Raises:
        KeyError: If obsm_key is not in adata.obsm.
    """
    if obsm_key not in adata.obsm:
        raise KeyError(f"'{obsm_key}' not found in adata.obsm; run score_anndata() first.")
    acts = adata.obsm[obsm_key]
    return sc.AnnData(
        X=np.asarray(acts, dtype=float),
        obs=adata.obs.copy(),
        var=pd.DataFrame(index=[str(c) for c in acts.columns]),
    )
