"""Regulator activity inference with the weighted-mean (wmean) method.

Scores how active each transcription factor or pathway is in each sample,
from an expression matrix and a signed regulator → target network (e.g. a
CollecTRI or PROGENy export). Activators with highly expressed targets and
repressors with silenced targets both raise a regulator's score.

Pipeline:
  1. Load the expression matrix (CSV/TSV features × samples, or h5ad cells ×
     genes) and the network table (source, target, weight).
  2. Replace missing expression values with 0.
  3. Score every regulator with >= min_n measured targets:
       wmean      = sum(w * x) / sum(|w|)
       norm_wmean = z-score of wmean against `times` feature-label permutations
       corr_wmean = wmean * -log10(empirical p-value)
  4. Apply Benjamini-Hochberg FDR correction to the empirical p-values within
     each statistic × condition.
  5. Write the long-format results, one wide matrix per statistic, and the
     top-ranked regulators per condition.

Usage:
    python -m regulon_activity.activity_inference --config configs/default_config.yaml \\
        --mat-file data/expression.csv --net-file data/collectri.csv \\
        --output-dir results/activity/
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from .results import pivot_scores, top_sources
from .single_cell import matrix_from_anndata
from .utils.io import (
    count_missing,
    load_config,
    load_h5ad,
    load_mat,
    load_net,
    resolve_missing,
    save_results,
)
from .utils.stats import apply_bh_correction
from .wmean import run_wmean

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)


# ── Input preparation ─────────────────────────────────────────────────────────

def prepare_matrix(mat_path: str | Path, fill_missing: bool = True):
    """Load an expression matrix in the features × samples layout.

    h5ad files are transposed from cells × genes; sparse matrices stay
    sparse. NaNs are replaced with 0 when fill_missing is set, for every
    input format.

    Args:
        mat_path: CSV/TSV (features × samples) or .h5ad file.
        fill_missing: Replace NaNs with 0.

    Returns:
        DataFrame, or a (values, features, samples) tuple for h5ad input.
    """
    mat_path = Path(mat_path)
    if mat_path.suffix == ".h5ad":
        mat = matrix_from_anndata(load_h5ad(mat_path))
    else:
        mat = load_mat(mat_path)

    n_missing = count_missing(mat)
    if n_missing and fill_missing:
        log.info("Replacing %d missing values with 0", n_missing)
        mat = resolve_missing(mat)
    return mat


# ── Full pipeline ─────────────────────────────────────────────────────────────

def run_activity_pipeline(
    mat_path: str | Path,
    net_path: str | Path,
    output_dir: str | Path,
    min_n: int = 5,
    times: int = 1000,
    seed: Optional[int] = 42,
    permutation: str = "shared",
    n_jobs: int = 1,
    fill_missing: bool = True,
    source_col: str = "source",
    target_col: str = "target",
    weight_col: Optional[str] = "weight",
    top_n: int = 10,
) -> dict:
    """Run wmean scoring end-to-end and write the results.

    Args:
        mat_path: Expression matrix file (see prepare_matrix()).
        net_path: Network CSV.
        output_dir: Directory for all outputs.
        min_n: Minimum measured targets per regulator.
        times: Number of permutations (0 = raw wmean only).
        seed: Permutation seed.
        permutation: 'shared' or 'per_source'.
        n_jobs: joblib workers for the permutations.
        fill_missing: Replace missing expression values with 0.
        source_col: Network column with regulator names.
        target_col: Network column with target names.
        weight_col: Network column with signed weights.
        top_n: Regulators to report per condition.

    Returns:
        Dict with keys: 'results' (long DataFrame), 'wide' (dict of
        statistic → conditions × sources DataFrame), 'top' (dict of
        condition → source list).
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    mat = prepare_matrix(mat_path, fill_missing=fill_missing)
    net = load_net(net_path, source=source_col, target=target_col, weight=weight_col)

    results = run_wmean(
        mat, net,
        min_n=min_n, times=times, seed=seed, permutation=permutation, n_jobs=n_jobs,
        source=source_col, target=target_col, weight=weight_col,
    )
    if results.empty:
        return {"results": results, "wide": {}, "top": {}}

    if times > 0:
        results = apply_bh_correction(
            results, pvalue_col="p_value", group_cols=["statistic", "condition"],
        )
    save_results(results, output_dir / "wmean_results.csv")
    log.info("Results saved: %s (%d rows)", output_dir / "wmean_results.csv", len(results))

    wide = {}
    for statistic in results["statistic"].unique():
        wide[statistic] = pivot_scores(results, statistic)
        save_results(wide[statistic], output_dir / f"{statistic}_scores.csv", index=True)

    rank_by = "norm_wmean" if times > 0 else "wmean"
    top = top_sources(results, statistic=rank_by, n=top_n)
    top_df = pd.DataFrame(
        [(cond, rank, src) for cond, srcs in top.items() for rank, src in enumerate(srcs, start=1)],
        columns=["condition", "rank", "source"],
    )
    save_results(top_df, output_dir / "top_sources.csv")
    log.info("Top %d sources per condition ranked by %s", top_n, rank_by)

    return {"results": results, "wide": wide, "top": top}


# ── CLI ───────────────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Infer regulator activities with the weighted-mean (wmean) method."
    )
    parser.add_argument("--config", help="Path to YAML config file.")
    parser.add_argument("--mat-file", help="Expression matrix (CSV/TSV features × samples, or h5ad).")
    parser.add_argument("--net-file", help="Network CSV with source, target and weight columns.")
    parser.add_argument("--output-dir", required=True, help="Output directory.")
    parser.add_argument("--min-n", type=int, default=5)
    parser.add_argument("--times", type=int, default=1000, help="Permutations (0 = wmean only).")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--permutation", default="shared", choices=["shared", "per_source"])
    parser.add_argument("--n-jobs", type=int, default=1)
    parser.add_argument("--top-n", type=int, default=10)
    parser.add_argument("--source-col", default="source")
    parser.add_argument("--target-col", default="target")
    parser.add_argument("--weight-col", default="weight")
    parser.add_argument("--keep-missing", action="store_true",
                        help="Do not replace missing values (scoring fails on NaNs).")
    args = parser.parse_args(argv)

    cfg = load_config(args.config) if args.config else {}
    act_cfg = cfg.get("activity_inference", {})
    paths_cfg = cfg.get("paths", {})

    mat_file = args.mat_file or paths_cfg.get("mat_file")
    net_file = args.net_file or paths_cfg.get("net_file")
    if not mat_file or not net_file:
        parser.error("--mat-file and --net-file are required (or set paths in --config).")

    run_activity_pipeline(
        mat_path=mat_file,
        net_path=net_file,
        output_dir=args.output_dir,
        min_n=act_cfg.get("min_n", args.min_n),
        times=act_cfg.get("times", args.times),
        seed=act_cfg.get("seed", args.seed),
        permutation=act_cfg.get("permutation", args.permutation),
        n_jobs=act_cfg.get("n_jobs", args.n_jobs),
        fill_missing=act_cfg.get("fill_missing", not args.keep_missing),
        source_col=act_cfg.get("source_col", args.source_col),
        target_col=act_cfg.get("target_col", args.target_col),
        weight_col=act_cfg.get("weight_col", args.weight_col),
        top_n=act_cfg.get("top_n", args.top_n),
    )


if __name__ == "__main__":
    main()
