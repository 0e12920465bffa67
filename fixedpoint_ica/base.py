"""
Base types and common utilities for the fixed-point ICA implementation.

This module provides the configuration enums, the error types raised by the
analysis, input validation, the convergence monitor shared by both solvers
and a small set of separation-quality metrics.
"""

import numpy as np
from enum import Enum
from typing import Sequence, Union
from scipy.optimize import linear_sum_assignment


ArrayLike = Union[np.ndarray, Sequence[Sequence[float]]]


class AnalysisMethod(Enum):
    """How the source columns are adjusted before whitening."""

    CENTER = "center"
    STANDARDIZE = "standardize"


class IndependentComponentAlgorithm(Enum):
    """
    FastICA strategy used to find the unmixing directions.

    DEFLATION finds components one at a time through a series of sequential
    Gram-Schmidt steps; it is useful when only a few components are needed.
    PARALLEL finds all components at once with a symmetric decorrelation.
    """

    DEFLATION = "deflation"
    PARALLEL = "parallel"


class StandardDeviationError(ArithmeticError):
    """Raised when standardizing a column whose standard deviation is zero."""

    def __init__(self, column: int):
        self.column = column
        super().__init__(
            "Standard deviation cannot be zero (cannot standardize the "
            f"constant variable at column index {column})."
        )


class NotComputedError(ValueError):
    """Raised when a matrix is requested before compute() has produced it."""


def validate_data(data: ArrayLike, name: str = "data") -> np.ndarray:
    """
    Validate observation data and return it as a 2D floating point array.

    Parameters:
    data: Matrix of shape (n_observations, n_variables), either a 2D array
          or a sequence of row vectors
    name: Argument name used in error messages

    Returns:
    The data as a 2D numpy array. Floating point arrays are returned without
    copying so that in-place adjustment can reach the caller's buffer.
    """
    if data is None:
        raise ValueError(f"{name} cannot be None")

    matrix = np.asarray(data)
    if not np.issubdtype(matrix.dtype, np.floating):
        matrix = matrix.astype(np.float64)

    if matrix.ndim != 2:
        raise ValueError(f"{name} must be a 2D array, got {matrix.ndim}D")
    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        raise ValueError(f"{name} must not be empty, got shape {matrix.shape}")
    if not np.isfinite(matrix).all():
        raise ValueError(f"{name} contains NaN or infinite values")

    return matrix


def max_absolute_change(current: np.ndarray, previous: np.ndarray) -> float:
    """
    Maximum absolute elementwise change between two iterates.

    Works for vectors and for matrices of equal shape alike.
    """
    current = np.asarray(current)
    previous = np.asarray(previous)
    if current.shape != previous.shape:
        raise ValueError(f"Shape mismatch: {current.shape} vs {previous.shape}")
    return float(np.max(np.abs(current - previous)))


class SeparationMetrics:
    """Utility class for scoring how well sources were recovered."""

    @staticmethod
    def correlation_matrix(estimated: np.ndarray, true: np.ndarray) -> np.ndarray:
        """Absolute Pearson correlation between every estimated and true column."""
        estimated = np.asarray(estimated, dtype=np.float64)
        true = np.asarray(true, dtype=np.float64)
        if estimated.shape[0] != true.shape[0]:
            raise ValueError("estimated and true must have the same number of observations")

        k = estimated.shape[1]
        full = np.corrcoef(estimated, true, rowvar=False)
        return np.abs(full[:k, k:])

    @staticmethod
    def match_sources(estimated: np.ndarray, true: np.ndarray) -> np.ndarray:
        """
        Align estimated components to true sources.

        ICA recovers sources only up to permutation, sign and scale, so the
        assignment maximizing total absolute correlation is used.

        Returns:
        Absolute correlation of each true source with its matched component,
        shape (n_sources,)
        """
        corr = SeparationMetrics.correlation_matrix(estimated, true)
        rows, cols = linear_sum_assignment(-corr)
        matched = np.zeros(corr.shape[1])
        matched[cols] = corr[rows, cols]
        return matched

    @staticmethod
    def amari_distance(demixing: np.ndarray, mixing: np.ndarray) -> float:
        """
        Amari distance between an estimated unmixing and the true mixing.

        demixing has shape (n_variables, n_components) and maps observation
        rows to component rows; mixing has shape (n_variables, n_sources) and
        generates observations as X = S @ mixing.T. The product
        P = mixing.T @ demixing is then a scaled permutation when separation
        succeeded. Zero means perfect recovery.
        """
        P = np.abs(np.asarray(mixing).T @ np.asarray(demixing))
        k = P.shape[0]
        if P.shape[0] != P.shape[1]:
            raise ValueError(f"Amari distance requires a square product, got {P.shape}")

        rows = np.sum(P / P.max(axis=1, keepdims=True), axis=1) - 1
        cols = np.sum(P / P.max(axis=0, keepdims=True), axis=0) - 1
        return float((rows.sum() + cols.sum()) / (2 * k * (k - 1))) if k > 1 else 0.0

    @staticmethod
    def orthonormality_error(W: np.ndarray) -> float:
        """Compute max |W W^T - I|, zero for a matrix with orthonormal rows."""
        W = np.asarray(W)
        return float(np.max(np.abs(W @ W.T - np.eye(W.shape[0]))))
