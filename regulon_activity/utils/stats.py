"""Shared statistical functions used across analysis modules."""

from typing import Optional
import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests


def null_zscore(
    estimate: np.ndarray,
    null_mean: np.ndarray,
    null_std: np.ndarray,
    tol=0.0,
) -> tuple[np.ndarray, int]:
    """Z-score observed scores against an empirical null distribution.

    Cells whose null spread is within tol of zero (e.g. a regulon spanning
    every feature with equal weights, where permutations differ only by
    rounding) get a z-score of 0 instead of a division by rounding noise.

    Formula: z = (estimate - null_mean) / null_std, with null_std using ddof=0.

    Args:
        estimate: Observed scores of shape (n_sources × n_samples).
        null_mean: Mean of the null scores, same shape.
        null_std: Standard deviation of the null scores, same shape.
        tol: Scalar or array broadcastable to estimate; spreads at or below
            it count as zero.

    Returns:
        Tuple of (z-score array, number of degenerate cells set to 0).
    """
    degenerate = null_std <= tol
    with np.errstate(divide="ignore", invalid="ignore"):
        z = (estimate - null_mean) / null_std
    z = np.where(degenerate, 0.0, z)
    return z, int(degenerate.sum())


def null_moments(
    estimate: np.ndarray,
    shift_sum: np.ndarray,
    shift_sumsq: np.ndarray,
    times: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Mean and standard deviation of a null accumulated as running sums.

    The sums are taken over (null - estimate) rather than the raw null, which
    keeps the variance free of cancellation when the null sits close to the
    observed score.

    Args:
        estimate: Observed scores of shape (n_sources × n_samples).
        shift_sum: Sum over draws of (null - estimate).
        shift_sumsq: Sum over draws of (null - estimate) ** 2.
        times: Number of draws.

    Returns:
        Tuple (null_mean, null_std), ddof=0.
    """
    shift_mean = shift_sum / times
    var = np.clip(shift_sumsq / times - shift_mean ** 2, 0.0, None)
    return estimate + shift_mean, np.sqrt(var)


def empirical_pvalues(hits: np.ndarray, times: int) -> np.ndarray:
    """Two-sided empirical p-values from permutation hit counts.

    p is the fraction of null scores whose absolute value reaches the absolute
    observed score. A p-value of exactly zero is floored to 1 / (n + 1), where
    n is the number of permutations.

    Args:
        hits: Per-cell count of draws with |null| >= |estimate|.
        times: Number of draws.

    Returns:
        Array of p-values with the shape of hits.
    """
    return np.where(hits == 0, 1.0 / (times + 1), hits / times)


def apply_bh_correction(
    df: pd.DataFrame,
    pvalue_col: str = "p_value",
    group_cols: Optional[list] = None,
) -> pd.DataFrame:
    """Apply Benjamini-Hochberg FDR correction to a p-value column.

    Adds 'FDR' and 'neg_log10_FDR' columns to the DataFrame. Rows without a
    p-value (e.g. raw wmean rows) keep NaN in both columns. When group_cols
    is specified, correction is applied independently within each group
    (e.g., per statistic and condition).

    Args:
        df: DataFrame containing a column of p-values.
        pvalue_col: Name of the column containing raw p-values.
        group_cols: Optional list of column names defining groups for
            within-group correction.

    Returns:
        Copy of df with 'FDR' and 'neg_log10_FDR' columns added.
    """
    df = df.copy()
    fdr_vals = pd.Series(np.nan, index=df.index)
    tested = df[df[pvalue_col].notna()]

    if group_cols:
        groups = [idx for _, idx in tested.groupby(group_cols).groups.items()]
    else:
        groups = [tested.index]

    for idx in groups:
        if len(idx) == 0:
            continue
        _, fdr, _, _ = multipletests(df.loc[idx, pvalue_col].values, method="fdr_bh")
        fdr_vals.loc[idx] = fdr

    df["FDR"] = fdr_vals
    df["neg_log10_FDR"] = -np.log10(df["FDR"].clip(lower=np.finfo(float).tiny))
    return df
