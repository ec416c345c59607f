"""Weighted-mean (wmean) enrichment scoring of regulator activity.

For each regulator R and sample s, wmean is the weighted mean of the
expression of R's measured targets, using the signed mode-of-regulation
weights:

  wmean[R, s] = sum_t(w_t * x[t, s]) / sum_t(|w_t|)

Activators (w > 0) with high expression and inhibited targets (w < 0) with
low expression both push the score up.

Optionally, the significance of each score is estimated empirically by
shuffling the feature labels of the matrix `times` times and rescoring:

  - norm_wmean: z-score of wmean against the permutation null
                (0 where the null has no spread beyond rounding error).
  - corr_wmean: wmean * -log10(p), where p is the fraction of null scores
                at least as extreme as the observed one, floored at
                1 / (times + 1).

Each permutation draw has its own generator, spawned from the master seed
by draw index, so results are reproducible for a given seed regardless of
how draws are split across joblib workers.

Permutation modes:
  - 'shared':     one row shuffle per draw, reused by every regulator, so
                  null scores of different regulators stay comparable.
  - 'per_source': every regulator gets its own shuffle within each draw.
"""

import logging
import warnings
from typing import Optional

import numpy as np
import pandas as pd
import scipy.sparse as sp
from joblib import Parallel, delayed

from .regulons import build_regulons, rename_net
from .utils.checks import EmptyResultWarning, check_mat, check_params
from .utils.stats import empirical_pvalues, null_moments, null_zscore

log = logging.getLogger(__name__)

STATISTICS = ("wmean", "norm_wmean", "corr_wmean")
RESULT_COLUMNS = ["statistic", "source", "condition", "score", "p_value"]


def _dense(a) -> np.ndarray:
    return a.toarray() if sp.issparse(a) else np.asarray(a)


# ── Permutation null ──────────────────────────────────────────────────────────

# Draws per joblib task. Fixed, so the reduction order (and therefore every
# floating-point sum) does not depend on n_jobs.
DRAWS_PER_BATCH = 50


def rounding_tolerance(X) -> np.ndarray:
    """Largest rounding error of a permuted weighted mean, per sample.

    Weights are L1-normalised, so every null score of sample s is a sum of at
    most n_features terms bounded by max|x[:, s]|.

    Returns:
        Array of shape (n_samples,).
    """
    n_features = X.shape[0]
    col_max = _dense(abs(X).max(axis=0)).ravel() if n_features else np.zeros(X.shape[1])
    return 4 * np.finfo(float).eps * n_features * col_max


def permuted_scores(X, W: sp.csr_matrix, rng: np.random.Generator, permutation: str) -> np.ndarray:
    """Score one permutation draw.

    'shared' shuffles the matrix rows once and scores every regulator against
    that shuffle; 'per_source' draws a fresh shuffle for each regulator in
    row order.

    Returns:
        Null scores of shape (n_sources × n_samples).
    """
    n_features = X.shape[0]
    if permutation == "shared":
        return _dense(W @ X[rng.permutation(n_features)])

    out = np.empty((W.shape[0], X.shape[1]))
    for r in range(W.shape[0]):
        start, end = W.indptr[r], W.indptr[r + 1]
        rows = rng.permutation(n_features)[W.indices[start:end]]
        out[r] = _dense(X[rows].T @ W.data[start:end]).ravel()
    return out


def _null_batch(
    X,
    W: sp.csr_matrix,
    estimate: np.ndarray,
    tol: np.ndarray,
    seeds: list,
    permutation: str,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Accumulate a batch of permutation draws into running sums.

    Args:
        X: Expression values (n_features × n_samples), dense or CSR.
        W: L1-normalised regulon weights (n_sources × n_features).
        estimate: Observed scores (n_sources × n_samples).
        tol: Rounding tolerance per sample (see rounding_tolerance()).
        seeds: One SeedSequence per draw.
        permutation: 'shared' or 'per_source'.

    Returns:
        Tuple (shift_sum, shift_sumsq, hits) of (n_sources × n_samples)
        arrays: sums of (null - estimate) and its square, and the count of
        draws with |null| >= |estimate| up to rounding.
    """
    shift_sum = np.zeros(estimate.shape)
    shift_sumsq = np.zeros(estimate.shape)
    hits = np.zeros(estimate.shape, dtype=np.int64)
    threshold = np.abs(estimate) - tol
    for seq in seeds:
        null = permuted_scores(X, W, np.random.default_rng(seq), permutation)
        shift = null - estimate
        shift_sum += shift
        shift_sumsq += shift ** 2
        hits += np.abs(null) >= threshold
    return shift_sum, shift_sumsq, hits


def wmean(
    X,
    W,
    times: int = 0,
    seed: Optional[int] = None,
    permutation: str = "shared",
    n_jobs: int = 1,
) -> tuple[np.ndarray, Optional[np.ndarray], Optional[np.ndarray], Optional[np.ndarray]]:
    """Compute wmean scores and, if requested, their permutation statistics.

    The null is never held in full: each batch of draws is reduced to running
    sums, so memory stays at a few (n_sources × n_samples) arrays per worker.

    Args:
        X: Expression values (n_features × n_samples), dense array or scipy
            sparse matrix, free of NaNs.
        W: Regulon weights (n_sources × n_features), each row divided by
            its L1 norm.
        times: Number of permutation draws. 0 skips the null entirely.
        seed: Master seed. None draws fresh OS entropy.
        permutation: 'shared' or 'per_source'.
        n_jobs: joblib workers for the permutation draws.

    Returns:
        Tuple (estimate, norm, corr, pvals) of (n_sources × n_samples) arrays.
        The last three are None when times == 0.
    """
    W = sp.csr_matrix(W)
    if sp.issparse(X):
        X = sp.csr_matrix(X)
    estimate = _dense(W @ X)
    if times == 0:
        return estimate, None, None, None

    tol = rounding_tolerance(X)
    seeds = np.random.SeedSequence(seed).spawn(times)
    batches = Parallel(n_jobs=n_jobs, return_as="generator")(
        delayed(_null_batch)(X, W, estimate, tol, seeds[a:a + DRAWS_PER_BATCH], permutation)
        for a in range(0, times, DRAWS_PER_BATCH)
    )
    shift_sum = np.zeros(estimate.shape)
    shift_sumsq = np.zeros(estimate.shape)
    hits = np.zeros(estimate.shape, dtype=np.int64)
    for batch_sum, batch_sumsq, batch_hits in batches:
        shift_sum += batch_sum
        shift_sumsq += batch_sumsq
        hits += batch_hits

    null_mean, null_std = null_moments(estimate, shift_sum, shift_sumsq, times)
    norm, n_degenerate = null_zscore(estimate, null_mean, null_std, tol=tol)
    if n_degenerate:
        log.debug("%d source × sample cells have a zero-variance null; norm_wmean set to 0", n_degenerate)
    pvals = empirical_pvalues(hits, times)
    corr = estimate * -np.log10(pvals)
    return estimate, norm, corr, pvals


# ── Result table ──────────────────────────────────────────────────────────────

def empty_results() -> pd.DataFrame:
    """Return a Result Table with no rows and the standard columns."""
    return pd.DataFrame({
        "statistic": pd.Series(dtype=object),
        "source": pd.Series(dtype=object),
        "condition": pd.Series(dtype=object),
        "score": pd.Series(dtype=float),
        "p_value": pd.Series(dtype=float),
    })


def assemble_results(
    sources: list,
    samples: list,
    estimate: np.ndarray,
    norm: Optional[np.ndarray] = None,
    corr: Optional[np.ndarray] = None,
    pvals: Optional[np.ndarray] = None,
) -> pd.DataFrame:
    """Flatten score arrays into the long-form Result Table.

    Rows are ordered by statistic (wmean, norm_wmean, corr_wmean), then
    source, then condition.

    Returns:
        DataFrame with columns statistic, source, condition, score, p_value.
        p_value is NaN for wmean rows.
    """
    n_sources, n_samples = estimate.shape
    src_col = np.repeat(np.asarray(sources, dtype=object), n_samples)
    cond_col = np.tile(np.asarray(samples, dtype=object), n_sources)

    stats = [("wmean", estimate, None)]
    if norm is not None:
        stats += [("norm_wmean", norm, pvals), ("corr_wmean", corr, pvals)]

    parts = [
        pd.DataFrame({
            "statistic": name,
            "source": src_col,
            "condition": cond_col,
            "score": scores.ravel().astype(float),
            "p_value": np.full(scores.size, np.nan) if p is None else p.ravel().astype(float),
        })
        for name, scores, p in stats
    ]
    return pd.concat(parts, ignore_index=True)[RESULT_COLUMNS]


# ── Entry point ───────────────────────────────────────────────────────────────

def _extract(mat) -> tuple:
    """Split a matrix input into (values, feature IDs, sample IDs).

    Accepts a features × samples DataFrame, or a (values, features, samples)
    tuple where values may be a scipy sparse matrix.
    """
    if isinstance(mat, pd.DataFrame):
        return mat.to_numpy(), mat.index.astype(str).tolist(), mat.columns.astype(str).tolist()
    if isinstance(mat, (tuple, list)) and len(mat) == 3:
        values, features, samples = mat
        values = values if sp.issparse(values) else np.asarray(values)
        return values, [str(f) for f in features], [str(s) for s in samples]
    raise TypeError(
        "mat must be a features × samples DataFrame or a (values, features, samples) tuple."
    )


def run_wmean(
    mat,
    net: pd.DataFrame,
    min_n: int = 5,
    times: int = 1000,
    seed: Optional[int] = None,
    permutation: str = "shared",
    n_jobs: int = 1,
    source: str = "source",
    target: str = "target",
    weight: Optional[str] = "weight",
) -> pd.DataFrame:
    """Infer regulator activities with the weighted-mean method.

    Args:
        mat: Expression matrix, features (rows) × samples (columns), without
            missing values. A (values, features, samples) tuple is also
            accepted.
        net: Network table with one row per regulator–target edge.
        min_n: Minimum number of a regulator's targets present in the matrix;
            regulators below it are left out of the results.
        times: Number of permutations. 0 returns only the raw wmean rows.
        seed: Seed for the permutation draws. None is not reproducible.
        permutation: 'shared' (one shuffle per draw for all regulators) or
            'per_source' (an independent shuffle per regulator).
        n_jobs: joblib workers for the permutation draws.
        source: Network column with regulator names.
        target: Network column with target feature names.
        weight: Network column with signed weights, or None for unit weights.

    Returns:
        Long-format DataFrame with columns ['statistic', 'source',
        'condition', 'score', 'p_value']. Empty (with an EmptyResultWarning)
        if no regulator passes min_n.

    Raises:
        InvalidInputError: On NaNs, duplicated IDs or edges, zero-weight
            regulons, or out-of-range parameters.
    """
    check_params(min_n, times, permutation)
    values, features, samples = _extract(mat)
    check_mat(values, features, samples)

    regulons = build_regulons(rename_net(net, source, target, weight), features, min_n=min_n)
    if regulons.n_sources == 0:
        msg = f"No sources with at least {min_n} targets in the matrix; returning empty results."
        log.warning(msg)
        warnings.warn(msg, EmptyResultWarning, stacklevel=2)
        return empty_results()

    log.info(
        "Scoring %d sources across %d samples (times=%d, permutation=%s)",
        regulons.n_sources, len(samples), times, permutation,
    )
    estimate, norm, corr, pvals = wmean(
        values, regulons.weights,
        times=times, seed=seed, permutation=permutation, n_jobs=n_jobs,
    )
    return assemble_results(regulons.sources, samples, estimate, norm, corr, pvals)
