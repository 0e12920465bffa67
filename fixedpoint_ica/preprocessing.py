"""
Preprocessing for the independent component analysis.

The adjuster keeps the column statistics of the training data and applies
them to any matrix it is given, so new data is always centered (and
optionally standardized) with the training means and deviations rather than
its own. Whitening decorrelates the adjusted data and rescales it to unit
variance.
"""

import logging
import numpy as np
import scipy.linalg as la
from typing import Tuple

from .base import AnalysisMethod, StandardDeviationError

logger = logging.getLogger(__name__)


class DataAdjuster:
    """
    Column centering / standardization with frozen training statistics.

    Parameters:
    means: Column means of the training data, shape (m,)
    standard_deviation: Sample standard deviations of the training data, shape (m,)
    method: AnalysisMethod.CENTER or AnalysisMethod.STANDARDIZE
    """

    def __init__(self, means: np.ndarray, standard_deviation: np.ndarray,
                 method: AnalysisMethod = AnalysisMethod.CENTER):
        self.means = np.asarray(means, dtype=np.float64)
        self.standard_deviation = np.asarray(standard_deviation, dtype=np.float64)
        self.method = AnalysisMethod(method)

    @classmethod
    def from_data(cls, matrix: np.ndarray,
                  method: AnalysisMethod = AnalysisMethod.CENTER) -> 'DataAdjuster':
        """Compute column statistics once from the training matrix."""
        means = np.mean(matrix, axis=0)
        if matrix.shape[0] > 1:
            std = np.std(matrix, axis=0, ddof=1)
        else:
            std = np.zeros(matrix.shape[1])
        return cls(means, std, method)

    @property
    def n_variables(self) -> int:
        return self.means.shape[0]

    def adjust(self, matrix: np.ndarray, in_place: bool = False) -> np.ndarray:
        """
        Subtract the training means and, when standardizing, divide by the
        training standard deviations.

        Parameters:
        matrix: Data of shape (n, m) with the same variables as the training data
        in_place: Whether to overwrite matrix instead of allocating a new buffer

        Returns:
        The adjusted matrix (matrix itself when in_place is True)
        """
        if matrix.shape[1] != self.n_variables:
            raise ValueError(f"Expected {self.n_variables} variables, got {matrix.shape[1]}")

        standardize = self.method == AnalysisMethod.STANDARDIZE
        if standardize:
            zero = np.flatnonzero(self.standard_deviation == 0)
            if zero.size > 0:
                raise StandardDeviationError(int(zero[0]))

        # Statistics follow the precision of the data being adjusted
        means = self.means.astype(matrix.dtype, copy=False)

        if in_place:
            result = np.subtract(matrix, means, out=matrix)
        else:
            result = matrix - means

        if standardize:
            result /= self.standard_deviation.astype(matrix.dtype, copy=False)

        return result


def whiten(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Whiten an adjusted matrix so its columns are decorrelated with unit variance.

    The covariance is decomposed with an SVD, C = U S U^T, and the transform
    U S^(-1/2) is applied to the data. Axes with zero variance get a zero
    scale instead of an infinite one.

    Parameters:
    matrix: Centered data of shape (n, m)

    Returns:
    (whitened data of shape (n, m), whitening transform of shape (m, m))
    """
    cov = np.atleast_2d(np.cov(matrix, rowvar=False))
    U, s, _ = la.svd(cov)

    scale = np.zeros_like(s)
    nonzero = s > 0
    scale[nonzero] = 1.0 / np.sqrt(s[nonzero])
    if not nonzero.all():
        logger.warning(f"Covariance is rank deficient: {np.sum(~nonzero)} zero-variance axes")

    transform = U * scale
    return matrix @ transform, transform
