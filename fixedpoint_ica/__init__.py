"""
Fixed-Point ICA: FastICA Independent Component Analysis

This package estimates a linear unmixing transform that recovers
statistically independent sources from linearly mixed observations.
It provides:

1. Column centering / standardization and whitening
2. Pluggable contrast functions (log-cosh, exponential, kurtosis)
3. Deflation FastICA with Gram-Schmidt decorrelation
4. Parallel FastICA with symmetric decorrelation and threaded row updates
5. A comparison framework against the scikit-learn baseline
"""

from .base import (AnalysisMethod, IndependentComponentAlgorithm, StandardDeviationError,
                   NotComputedError, SeparationMetrics, validate_data, max_absolute_change)
from .contrast import ContrastFunction, LogCosh, Exponential, Kurtosis
from .preprocessing import DataAdjuster, whiten
from .solvers import deflation, parallel, symmetric_decorrelation, fixed_point_update
from .analysis import (IndependentComponentAnalysis, IndependentComponent,
                       IndependentComponentCollection)
from .comparison import AlgorithmComparison, make_mixture, run_mixture_comparison

__version__ = "1.0.0"

__all__ = [
    # Base types
    'AnalysisMethod',
    'IndependentComponentAlgorithm',
    'StandardDeviationError',
    'NotComputedError',
    'SeparationMetrics',
    'validate_data',
    'max_absolute_change',

    # Contrast functions
    'ContrastFunction',
    'LogCosh',
    'Exponential',
    'Kurtosis',

    # Preprocessing
    'DataAdjuster',
    'whiten',

    # Solvers
    'deflation',
    'parallel',
    'symmetric_decorrelation',
    'fixed_point_update',

    # Analysis
    'IndependentComponentAnalysis',
    'IndependentComponent',
    'IndependentComponentCollection',

    # Comparison Framework
    'AlgorithmComparison',
    'make_mixture',
    'run_mixture_comparison'
]

_CONTRASTS = {
    'logcosh': LogCosh,
    'exp': Exponential,
    'cube': Kurtosis,
}


def get_version():
    """Return the current version."""
    return __version__


def get_available_contrasts():
    """Return a list of available contrast function names."""
    return list(_CONTRASTS)


def create_analysis(data, algorithm: str = 'parallel', method: str = 'center',
                    contrast: str = 'logcosh', **kwargs):
    """
    Factory function to create an analysis from option names.

    Parameters:
    data: Observation matrix of shape (n, m)
    algorithm: 'parallel' or 'deflation'
    method: 'center' or 'standardize'
    contrast: Name of the contrast function, see get_available_contrasts()
    **kwargs: Additional parameters for IndependentComponentAnalysis

    Returns:
    Configured, not yet computed, IndependentComponentAnalysis
    """
    algorithms = {a.value: a for a in IndependentComponentAlgorithm}
    methods = {m.value: m for m in AnalysisMethod}

    if algorithm not in algorithms:
        raise ValueError(f"Unknown algorithm: {algorithm}. "
                         f"Available algorithms: {list(algorithms.keys())}")
    if method not in methods:
        raise ValueError(f"Unknown method: {method}. "
                         f"Available methods: {list(methods.keys())}")
    if contrast not in _CONTRASTS:
        raise ValueError(f"Unknown contrast: {contrast}. "
                         f"Available contrasts: {list(_CONTRASTS.keys())}")

    return IndependentComponentAnalysis(data, method=methods[method],
                                        algorithm=algorithms[algorithm],
                                        contrast=_CONTRASTS[contrast](), **kwargs)
