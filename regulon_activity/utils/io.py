"""I/O helpers for loading and saving analysis data."""

from pathlib import Path
from typing import Optional
import numpy as np
import pandas as pd
import scanpy as sc
import scipy.sparse as sp
import yaml

from .checks import InvalidInputError


def load_h5ad(path: str | Path) -> sc.AnnData:
    """Read single-cell expression stored as .h5ad.

    Args:
        path: Path to the .h5ad file.

    Returns:
        AnnData with cells as observations and genes as variables.

    Raises:
        FileNotFoundError: If path does not exist.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"h5ad file not found: {path}")
    return sc.read_h5ad(path)


def load_mat(path: str | Path) -> pd.DataFrame:
    """Load a features × samples expression matrix from CSV or TSV.

    The first column holds the feature IDs; the header holds the sample IDs.
    Files ending in .tsv or .txt are read tab-separated.

    Args:
        path: Path to the matrix file.

    Returns:
        DataFrame with feature IDs as the index and sample IDs as columns.
    """
    path = Path(path)
    sep = "\t" if path.suffix in {".tsv", ".txt"} else ","
    df = pd.read_csv(path, sep=sep, index_col=0)
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    return df


def count_missing(mat) -> int:
    """Number of NaNs in a DataFrame or a (values, features, samples) tuple."""
    if isinstance(mat, pd.DataFrame):
        return int(mat.isna().sum().sum())
    values = mat[0]
    data = values.data if sp.issparse(values) else np.asarray(values)
    return int(np.isnan(data).sum()) if np.issubdtype(data.dtype, np.floating) else 0


def resolve_missing(mat, fill_value: float = 0.0):
    """Replace missing values in an expression matrix.

    Features not detected in a sample are usually reported as NaN; scoring
    treats them as unexpressed. Sparse matrices only carry NaNs among their
    stored entries, which are overwritten in a copy; the sparsity pattern is
    unchanged.

    Args:
        mat: Features × samples DataFrame, or a (values, features, samples)
            tuple with dense or sparse values.
        fill_value: Value substituted for NaN.

    Returns:
        Copy of mat, in the same form, without NaNs.
    """
    if isinstance(mat, pd.DataFrame):
        return mat.fillna(fill_value)

    values, features, samples = mat
    if sp.issparse(values):
        values = values.copy()
        if np.issubdtype(values.data.dtype, np.floating):
            values.data[np.isnan(values.data)] = fill_value
    else:
        values = np.array(values, dtype=float)
        values[np.isnan(values)] = fill_value
    return values, features, samples


def load_net(
    path: str | Path,
    source: str = "source",
    target: str = "target",
    weight: Optional[str] = "weight",
) -> pd.DataFrame:
    """Load a regulator–target–weight network table.

    Args:
        path: Path to a CSV with one row per edge.
        source: Column holding regulator names.
        target: Column holding target feature names.
        weight: Column holding the signed edge weight, or None for an
            unweighted network.

    Returns:
        DataFrame with the source, target and (if given) weight columns.

    Raises:
        InvalidInputError: If required columns are missing.
    """
    df = pd.read_csv(path)
    required = {source, target} | ({weight} if weight else set())
    missing = required - set(df.columns)
    if missing:
        raise InvalidInputError(f"Network file missing columns: {missing}")
    cols = [source, target] + ([weight] if weight else [])
    return df[cols]


def save_results(df: pd.DataFrame, path: str | Path, index: bool = False) -> Path:
    """Save a result table to CSV, creating the parent directory.

    Args:
        df: Table to save.
        path: Output path for the CSV file.
        index: Whether to write the DataFrame index.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index)
    return path


def load_config(path: str | Path) -> dict:
    """Load a YAML configuration file.

    Args:
        path: Path to a YAML config file. An empty file yields {}.

    Returns:
        Dictionary of configuration sections.

    Raises:
        FileNotFoundError: If the config file does not exist.
        InvalidInputError: If the top level of the file is not a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise InvalidInputError(
            f"Config file {path} must contain a mapping of sections, got {type(cfg).__name__}."
        )
    return cfg
