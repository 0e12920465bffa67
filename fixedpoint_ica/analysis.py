"""
Independent Component Analysis built on the FastICA fixed-point solvers.

The analysis object owns the source data and its column statistics. Each call
to compute() adjusts and whitens the source, runs the selected solver, and
assembles the demixing, mixing and result matrices together with one
component view per recovered direction.
"""

import logging
import weakref
import numpy as np
import scipy.linalg as la
from collections.abc import Sequence
from typing import Optional, Dict, Any, List, Union
from sklearn.utils import check_random_state

from .base import (AnalysisMethod, IndependentComponentAlgorithm, NotComputedError,
                   ArrayLike, validate_data)
from .contrast import ContrastFunction, LogCosh
from .preprocessing import DataAdjuster, whiten
from .solvers import deflation, parallel

logger = logging.getLogger(__name__)


class IndependentComponentAnalysis:
    """
    FastICA analysis of a linearly mixed observation matrix.

    Column means and standard deviations are computed once, at construction,
    and reused for every later adjustment, so separate() always adjusts new
    data with the statistics of the training data.

    Parameters:
    data: Observations of shape (n, m), a 2D array or a sequence of row vectors
    method: Whether columns are only centered or also standardized
    algorithm: DEFLATION or PARALLEL FastICA
    iterations: Maximum number of solver iterations
    tolerance: Relative convergence threshold
    contrast: Nonlinearity for the fixed-point update (LogCosh by default)
    overwrite: Whether compute() adjusts the source matrix in place. When
        False the data is copied at construction.
    random_state: Seed or RandomState for the initial guess
    n_jobs: Worker threads for the parallel row updates
    """

    def __init__(self, data: ArrayLike,
                 method: AnalysisMethod = AnalysisMethod.CENTER,
                 algorithm: IndependentComponentAlgorithm = IndependentComponentAlgorithm.PARALLEL,
                 iterations: int = 100, tolerance: float = 1e-3,
                 contrast: Optional[ContrastFunction] = None,
                 overwrite: bool = False, random_state=None,
                 n_jobs: Optional[int] = -1):
        self._source = validate_data(data)
        if not overwrite and self._source is data:
            # Later edits to the caller's array must not reach compute()
            self._source = self._source.copy()
        self._adjuster = DataAdjuster.from_data(self._source, AnalysisMethod(method))

        self.algorithm = algorithm
        self.iterations = iterations
        self.tolerance = tolerance
        self.contrast = contrast if contrast is not None else LogCosh()
        self.overwrite = overwrite
        self.random_state = random_state
        self.n_jobs = n_jobs

        # Will be set during compute()
        self._whitening_matrix = None
        self._demixing_matrix = None
        self._mixing_matrix = None
        self._result_matrix = None
        self._components = None
        self._narrowed = {}
        self.n_iter_ = None

    # ------------------------------------------------------------------
    # Configuration

    @property
    def method(self) -> AnalysisMethod:
        return self._adjuster.method

    @method.setter
    def method(self, value: AnalysisMethod) -> None:
        self._adjuster.method = AnalysisMethod(value)

    @property
    def algorithm(self) -> IndependentComponentAlgorithm:
        return self._algorithm

    @algorithm.setter
    def algorithm(self, value: IndependentComponentAlgorithm) -> None:
        self._algorithm = IndependentComponentAlgorithm(value)

    @property
    def iterations(self) -> int:
        """Maximum number of iterations the solver may perform."""
        return self._iterations

    @iterations.setter
    def iterations(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"iterations must be non-negative, got {value}")
        self._iterations = int(value)

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @tolerance.setter
    def tolerance(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"tolerance must be positive, got {value}")
        self._tolerance = float(value)

    @property
    def contrast(self) -> ContrastFunction:
        return self._contrast

    @contrast.setter
    def contrast(self, value: ContrastFunction) -> None:
        if not isinstance(value, ContrastFunction):
            raise TypeError(f"contrast must be a ContrastFunction, got {type(value).__name__}")
        self._contrast = value

    # ------------------------------------------------------------------
    # Data and results

    @property
    def source(self) -> np.ndarray:
        return self._source

    @property
    def means(self) -> np.ndarray:
        return self._adjuster.means

    @property
    def standard_deviation(self) -> np.ndarray:
        return self._adjuster.standard_deviation

    @property
    def n_variables(self) -> int:
        return self._source.shape[1]

    @property
    def is_computed(self) -> bool:
        return self._demixing_matrix is not None

    @property
    def whitening_matrix(self) -> Optional[np.ndarray]:
        """Whitening transform of shape (m, m)."""
        return self._whitening_matrix

    @property
    def demixing_matrix(self) -> Optional[np.ndarray]:
        """Maps adjusted observations to components, shape (m, k)."""
        return self._demixing_matrix

    @property
    def mixing_matrix(self) -> Optional[np.ndarray]:
        """Maps components back to observations, shape (k, m)."""
        return self._mixing_matrix

    @property
    def result(self) -> Optional[np.ndarray]:
        """The adjusted source demixed into components, shape (n, k)."""
        return self._result_matrix

    @property
    def components(self) -> Optional['IndependentComponentCollection']:
        return self._components

    # ------------------------------------------------------------------
    # Computation

    def compute(self, components: Optional[int] = None) -> 'IndependentComponentAnalysis':
        """
        Compute the independent components of the source data.

        Every call recomputes all matrices and replaces the component
        collection; cached reduced-precision copies are discarded.

        Parameters:
        components: Number of components to extract, at most the number of
                    variables. Defaults to all variables.

        Returns:
        Self (computed analysis)
        """
        m = self.n_variables
        if components is None:
            components = m
        if not 1 <= components <= m:
            raise ValueError(f"components must be between 1 and {m}, got {components}")

        logger.info(f"Computing {components} components from data of shape "
                    f"{self._source.shape} with {self.algorithm.value} FastICA")

        # Center (and standardize) with the statistics taken at construction
        matrix = self._adjuster.adjust(self._source, in_place=self.overwrite)

        whitened, whitening = whiten(matrix)

        # Unit-scale initial guess for the demixing directions
        rng = check_random_state(self.random_state)
        initial = rng.uniform(0, 1, size=(components, m))

        if self.algorithm == IndependentComponentAlgorithm.DEFLATION:
            W, n_iter = deflation(whitened, components, initial, self.contrast,
                                  self.iterations, self.tolerance)
        else:
            W, n_iter = parallel(whitened, components, initial, self.contrast,
                                 self.iterations, self.tolerance, self.n_jobs)

        # Combine the rotation and the whitening into one demixing matrix
        demixing = whitening @ W.T
        _normalize(demixing)

        mixing = la.pinv(demixing)
        _normalize(mixing)

        result = matrix @ demixing

        for array in (whitening, demixing, mixing, result):
            array.flags.writeable = False

        self._whitening_matrix = whitening
        self._demixing_matrix = demixing
        self._mixing_matrix = mixing
        self._result_matrix = result
        self._narrowed = {}
        self.n_iter_ = n_iter

        self._components = IndependentComponentCollection(
            [IndependentComponent(self, i) for i in range(components)]
        )
        return self

    def separate(self, data: ArrayLike) -> Union[np.ndarray, List[np.ndarray]]:
        """
        Demix new observations into independent components.

        The data is adjusted with the training statistics, never its own.
        float32 input is projected through a cached float32 copy of the
        demixing matrix. A sequence of row vectors returns a list of rows.

        Parameters:
        data: Observations of shape (n, m)

        Returns:
        Components of shape (n, k)
        """
        demixing = self._require('_demixing_matrix', 'demixing')
        rows = _is_row_layout(data)
        matrix = _as_matrix(data)

        adjusted = self._adjuster.adjust(matrix, in_place=False)
        if adjusted.dtype == np.float32:
            output = adjusted @ self._narrow('demixing', demixing).T
        else:
            output = adjusted @ demixing

        return list(output) if rows else output

    def combine(self, data: ArrayLike) -> Union[np.ndarray, List[np.ndarray]]:
        """
        Mix components back into observation space.

        Parameters:
        data: Components of shape (n, k)

        Returns:
        Observations of shape (n, m)
        """
        mixing = self._require('_mixing_matrix', 'mixing')
        rows = _is_row_layout(data)
        matrix = _as_matrix(data)

        if matrix.shape[1] != mixing.shape[0]:
            raise ValueError(f"Expected {mixing.shape[0]} components, got {matrix.shape[1]}")

        if matrix.dtype == np.float32:
            output = matrix @ self._narrow('mixing', mixing).T
        else:
            output = matrix @ mixing

        return list(output) if rows else output

    def get_analysis_info(self) -> Dict[str, Any]:
        """Get information about the analysis configuration and results."""
        info = {
            "computed": self.is_computed,
            "method": self.method.value,
            "algorithm": self.algorithm.value,
            "iterations": self.iterations,
            "tolerance": self.tolerance,
            "contrast": repr(self.contrast),
            "overwrite": self.overwrite,
            "n_observations": self._source.shape[0],
            "n_variables": self.n_variables,
        }
        if self.is_computed:
            info.update({
                "n_components": self._demixing_matrix.shape[1],
                "n_iter": self.n_iter_,
                "demixing_matrix": self._demixing_matrix.copy(),
                "mixing_matrix": self._mixing_matrix.copy(),
                "whitening_matrix": self._whitening_matrix.copy(),
            })
        return info

    def _require(self, attribute: str, name: str) -> np.ndarray:
        matrix = getattr(self, attribute)
        if matrix is None:
            raise NotComputedError(f"The {name} matrix is not available. Call compute() first.")
        return matrix

    def _narrow(self, name: str, matrix: np.ndarray) -> np.ndarray:
        """Transposed float32 copy of a result matrix, built on first use."""
        if name not in self._narrowed:
            self._narrowed[name] = np.ascontiguousarray(matrix.T, dtype=np.float32)
        return self._narrowed[name]


class IndependentComponent:
    """
    View of a single independent component.

    Holds only a weak reference to the analysis that produced it; the
    collection is replaced wholesale every time the analysis is recomputed.
    """

    def __init__(self, analysis: IndependentComponentAnalysis, index: int):
        self._analysis = weakref.ref(analysis)
        self._index = index

    @property
    def index(self) -> int:
        return self._index

    @property
    def analysis(self) -> IndependentComponentAnalysis:
        analysis = self._analysis()
        if analysis is None:
            raise ReferenceError("The analysis for this component no longer exists")
        return analysis

    @property
    def mixing_vector(self) -> np.ndarray:
        return self._column(self.analysis.mixing_matrix)

    @property
    def demixing_vector(self) -> np.ndarray:
        return self._column(self.analysis.demixing_matrix)

    @property
    def whitening_vector(self) -> np.ndarray:
        return self._column(self.analysis.whitening_matrix)

    def _column(self, matrix: Optional[np.ndarray]) -> np.ndarray:
        if matrix is None:
            raise NotComputedError("The analysis has not been computed")
        return matrix[:, self._index].copy()

    def __repr__(self) -> str:
        return f"IndependentComponent(index={self._index})"


class IndependentComponentCollection(Sequence):
    """Read-only, ordered collection of component views."""

    def __init__(self, components: List[IndependentComponent]):
        self._components = tuple(components)

    def __getitem__(self, index):
        return self._components[index]

    def __len__(self) -> int:
        return len(self._components)

    def __repr__(self) -> str:
        return f"IndependentComponentCollection({len(self)} components)"


def _normalize(matrix: np.ndarray) -> None:
    # Divides by the sum of all entries, not by a norm
    matrix /= np.sum(matrix)


def _is_row_layout(data: ArrayLike) -> bool:
    return not isinstance(data, np.ndarray)


def _as_matrix(data: ArrayLike) -> np.ndarray:
    matrix = validate_data(data)
    if matrix.dtype not in (np.float32, np.float64):
        matrix = matrix.astype(np.float64)
    return matrix
