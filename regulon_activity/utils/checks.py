"""Input validation shared by the scoring and regulon modules."""

import numbers

import numpy as np
import pandas as pd
import scipy.sparse as sp


class InvalidInputError(ValueError):
    """Raised when a matrix, network or scoring parameter cannot be scored."""


class EmptyResultWarning(UserWarning):
    """Emitted when no regulator passes the minimum regulon size filter."""


PERMUTATION_MODES = ("shared", "per_source")


def check_mat(values, features, samples) -> None:
    """Validate an expression matrix before scoring.

    Args:
        values: Dense array or scipy sparse matrix of shape
            (n_features × n_samples).
        features: Row labels (feature IDs).
        samples: Column labels (sample IDs).

    Raises:
        InvalidInputError: If the shape does not match the labels, labels are
            duplicated, or the matrix holds NaN / infinite values.
    """
    if values.shape != (len(features), len(samples)):
        raise InvalidInputError(
            f"Matrix shape {values.shape} does not match "
            f"{len(features)} features × {len(samples)} samples."
        )
    for kind, labels in (("feature", features), ("sample", samples)):
        dup = pd.Index(labels)[pd.Index(labels).duplicated()].unique().tolist()
        if dup:
            raise InvalidInputError(f"Matrix contains duplicated {kind} IDs: {dup[:5]}")

    data = values.data if sp.issparse(values) else np.asarray(values)
    if not np.issubdtype(data.dtype, np.number):
        raise InvalidInputError("Matrix must be numeric.")
    if np.isnan(data).any():
        raise InvalidInputError(
            "Matrix contains missing values; resolve them (e.g. resolve_missing) before scoring."
        )
    if np.isinf(data).any():
        raise InvalidInputError("Matrix contains infinite values.")


def check_params(min_n, times, permutation: str = "shared") -> None:
    """Validate scoring parameters.

    Raises:
        InvalidInputError: If min_n < 1, times < 0, either is not an integer,
            or permutation is not a known mode.
    """
    for name, value, lower in (("min_n", min_n, 1), ("times", times, 0)):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidInputError(f"{name} must be an integer, got {value!r}.")
        if value < lower:
            raise InvalidInputError(f"{name} must be >= {lower}, got {value}.")
    if permutation not in PERMUTATION_MODES:
        raise InvalidInputError(
            f"Unknown permutation mode '{permutation}'. Choose: {', '.join(PERMUTATION_MODES)}."
        )
