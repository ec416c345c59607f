"""Reshaping and ranking of long-form activity results."""

import pandas as pd

from .wmean import STATISTICS


def pivot_scores(
    results: pd.DataFrame,
    statistic: str = "norm_wmean",
    value: str = "score",
) -> pd.DataFrame:
    """Pivot one statistic of the Result Table to a wide matrix.

    Args:
        results: Output of run_wmean().
        statistic: One of 'wmean', 'norm_wmean', 'corr_wmean'.
        value: Column to spread ('score' or 'p_value').

    Returns:
        DataFrame of shape (n_conditions × n_sources). Conditions keep their
        order of appearance; sources are sorted.

    Raises:
        ValueError: If the statistic is unknown or absent from results.
    """
    if statistic not in STATISTICS:
        raise ValueError(f"Unknown statistic '{statistic}'. Choose: {', '.join(STATISTICS)}.")
    sub = results[results["statistic"] == statistic]
    if sub.empty:
        raise ValueError(f"No '{statistic}' rows in results (were permutations run?).")

    wide = sub.pivot(index="condition", columns="source", values=value)
    wide = wide.loc[sub["condition"].unique()]
    wide.index.name = None
    wide.columns.name = None
    return wide


def top_sources(
    results: pd.DataFrame,
    statistic: str = "norm_wmean",
    n: int = 10,
    by_abs: bool = False,
) -> dict[str, list]:
    """Select the top-n sources per condition ranked by score.

    Args:
        results: Output of run_wmean().
        statistic: Statistic to rank by.
        n: Number of sources to return per condition.
        by_abs: Rank by absolute score, so strongly repressed sources count
            as much as strongly active ones.

    Returns:
        Dict mapping condition → list of top-n source names.
    """
    wide = pivot_scores(results, statistic=statistic)
    if by_abs:
        wide = wide.abs()
    return {
        cond: wide.loc[cond].sort_values(ascending=False, kind="stable").head(n).index.tolist()
        for cond in wide.index
    }
