"""
Comparative analysis of the FastICA strategies on synthetic mixtures.

This module generates linearly mixed non-Gaussian sources with a known
mixing matrix and compares deflation, parallel and the scikit-learn FastICA
baseline by how well each recovers the sources and how long it takes.
"""

import time
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from scipy import signal
from typing import Dict, List, Tuple, Any, Optional, Sequence
from sklearn.decomposition import FastICA
from sklearn.utils import check_random_state

from .base import IndependentComponentAlgorithm, SeparationMetrics, validate_data
from .contrast import ContrastFunction, LogCosh, Exponential, Kurtosis
from .analysis import IndependentComponentAnalysis


SOURCE_KINDS = ("sine", "square", "sawtooth", "laplace", "uniform")

# Contrast name -> (contrast factory, scikit-learn fun)
CONTRASTS = {
    "logcosh": (LogCosh, "logcosh"),
    "exp": (Exponential, "exp"),
    "cube": (Kurtosis, "cube"),
}


def make_mixture(n_samples: int = 2000, mixing: Optional[np.ndarray] = None,
                 kinds: Sequence[str] = ("sine", "square"),
                 random_state=None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Generate independent non-Gaussian sources and mix them linearly.

    Parameters:
    n_samples: Number of observations
    mixing: Mixing matrix of shape (n_variables, n_sources). Random when None.
    kinds: Source waveform for each source, from SOURCE_KINDS
    random_state: Seed or RandomState

    Returns:
    (observed of shape (n, n_variables), sources of shape (n, n_sources),
     mixing of shape (n_variables, n_sources)), with observed = sources @ mixing.T
    """
    rng = check_random_state(random_state)
    t = np.linspace(0, 8, n_samples)

    columns = []
    for i, kind in enumerate(kinds):
        if kind == "sine":
            s = np.sin((2 + i) * t)
        elif kind == "square":
            s = signal.square((3 + i) * t)
        elif kind == "sawtooth":
            s = signal.sawtooth((2 + i) * np.pi * t)
        elif kind == "laplace":
            s = rng.laplace(size=n_samples)
        elif kind == "uniform":
            s = rng.uniform(-1, 1, size=n_samples)
        else:
            raise ValueError(f"Unknown source kind: {kind}. Available kinds: {list(SOURCE_KINDS)}")
        columns.append(s)

    sources = np.column_stack(columns)
    sources = (sources - sources.mean(axis=0)) / sources.std(axis=0)

    if mixing is None:
        mixing = rng.uniform(0.5, 2.0, size=(len(kinds), len(kinds)))
    mixing = np.asarray(mixing, dtype=np.float64)
    if mixing.shape[1] != sources.shape[1]:
        raise ValueError(f"mixing must have {sources.shape[1]} columns, got {mixing.shape[1]}")

    observed = sources @ mixing.T
    return observed, sources, mixing


class AlgorithmComparison:
    """
    Comparison framework for the FastICA strategies.

    Each run is scored by the absolute correlation between recovered and
    true sources after best alignment, the Amari distance when the true
    mixing matrix is known, the number of iterations and wall-clock time.
    """

    def __init__(self, random_state: int = 42, iterations: int = 200,
                 tolerance: float = 1e-4):
        """
        Initialize comparison framework.

        Parameters:
        random_state: Random seed for reproducible initial guesses
        iterations: Iteration cap passed to every method
        tolerance: Convergence tolerance passed to every method
        """
        self.random_state = random_state
        self.iterations = iterations
        self.tolerance = tolerance
        self.results = {}

    def compare_methods(self, observed: np.ndarray, sources: np.ndarray,
                        mixing: Optional[np.ndarray] = None,
                        contrasts: Optional[List[str]] = None,
                        include_baseline: bool = True) -> Dict[str, Any]:
        """
        Run deflation, parallel and (optionally) the scikit-learn baseline.

        Parameters:
        observed: Mixed observations of shape (n, m)
        sources: True sources of shape (n, k)
        mixing: True mixing matrix of shape (m, k), enables the Amari distance
        contrasts: Contrast names from CONTRASTS, all of them by default
        include_baseline: Whether to run sklearn.decomposition.FastICA as well

        Returns:
        Mapping of run name to its metrics
        """
        observed = validate_data(observed, "observed")
        sources = validate_data(sources, "sources")
        n_components = sources.shape[1]

        if contrasts is None:
            contrasts = list(CONTRASTS)
        unknown = [c for c in contrasts if c not in CONTRASTS]
        if unknown:
            raise ValueError(f"Unknown contrasts: {unknown}. Available contrasts: {list(CONTRASTS)}")

        results = {}
        for name in contrasts:
            factory, fun = CONTRASTS[name]
            for algorithm in IndependentComponentAlgorithm:
                key = f"{algorithm.value}_{name}"
                results[key] = self._evaluate_analysis(
                    observed, sources, mixing, n_components, algorithm, factory(), name
                )

            if include_baseline:
                results[f"sklearn_{name}"] = self._evaluate_baseline(
                    observed, sources, mixing, n_components, fun
                )

        self.results = results
        return results

    def _evaluate_analysis(self, observed: np.ndarray, sources: np.ndarray,
                           mixing: Optional[np.ndarray], n_components: int,
                           algorithm: IndependentComponentAlgorithm,
                           contrast: ContrastFunction, name: str) -> Dict[str, Any]:
        """Evaluate one configuration of IndependentComponentAnalysis."""
        ica = IndependentComponentAnalysis(
            observed, algorithm=algorithm, contrast=contrast,
            iterations=self.iterations, tolerance=self.tolerance,
            random_state=self.random_state
        )

        start = time.perf_counter()
        ica.compute(n_components)
        elapsed = time.perf_counter() - start

        n_iter = ica.n_iter_
        return self._score(ica.result, sources, ica.demixing_matrix, mixing, {
            "method": algorithm.value,
            "contrast": name,
            "n_iter": int(np.max(n_iter)) if isinstance(n_iter, list) else int(n_iter),
            "time": elapsed,
        })

    def _evaluate_baseline(self, observed: np.ndarray, sources: np.ndarray,
                           mixing: Optional[np.ndarray], n_components: int,
                           fun: str) -> Dict[str, Any]:
        """Evaluate scikit-learn's FastICA as a reference."""
        ica = FastICA(n_components=n_components, fun=fun, whiten="unit-variance",
                      max_iter=self.iterations, tol=self.tolerance,
                      random_state=self.random_state)

        start = time.perf_counter()
        estimated = ica.fit_transform(observed)
        elapsed = time.perf_counter() - start

        return self._score(estimated, sources, ica.components_.T, mixing, {
            "method": "sklearn",
            "contrast": fun,
            "n_iter": int(ica.n_iter_),
            "time": elapsed,
        })

    @staticmethod
    def _score(estimated: np.ndarray, sources: np.ndarray, demixing: np.ndarray,
               mixing: Optional[np.ndarray], info: Dict[str, Any]) -> Dict[str, Any]:
        correlations = SeparationMetrics.match_sources(estimated, sources)
        info.update({
            "correlations": correlations,
            "min_correlation": float(np.min(correlations)),
            "mean_correlation": float(np.mean(correlations)),
            "amari_distance": (SeparationMetrics.amari_distance(demixing, mixing)
                               if mixing is not None else np.nan),
        })
        return info

    def to_dataframe(self) -> pd.DataFrame:
        """Summarize the results as one row per run."""
        if not self.results:
            raise ValueError("No comparison results found. Run compare_methods first.")

        data = []
        for name, run in self.results.items():
            data.append({
                'Run': name,
                'Method': run['method'],
                'Contrast': run['contrast'],
                'Iterations': run['n_iter'],
                'Time': run['time'],
                'Min_Correlation': run['min_correlation'],
                'Mean_Correlation': run['mean_correlation'],
                'Amari_Distance': run['amari_distance'],
            })
        return pd.DataFrame(data)

    def export_results(self, filepath: str) -> None:
        """Export results to CSV format."""
        self.to_dataframe().to_csv(filepath, index=False)
        print(f"Results exported to {filepath}")

    def plot_comparison_results(self, save_path: Optional[str] = None,
                                show: bool = False) -> plt.Figure:
        """Plot recovery quality and run time for every run."""
        df = self.to_dataframe()

        fig, axes = plt.subplots(1, 3, figsize=(18, 5))
        fig.suptitle('FastICA Comparison Results', fontsize=16)

        colors = df['Method'].map({'deflation': 'skyblue', 'parallel': 'lightcoral',
                                   'sklearn': 'lightgreen'}).fillna('grey').tolist()

        ax1 = axes[0]
        ax1.bar(df['Run'], df['Min_Correlation'], color=colors)
        ax1.set_ylabel('Worst |correlation| with true source')
        ax1.set_title('Source Recovery')
        ax1.set_ylim(min(0.9, df['Min_Correlation'].min() - 0.01), 1.0)
        ax1.tick_params(axis='x', rotation=45)

        ax2 = axes[1]
        ax2.bar(df['Run'], df['Amari_Distance'].fillna(0), color=colors)
        ax2.set_ylabel('Amari distance')
        ax2.set_title('Unmixing Error')
        ax2.tick_params(axis='x', rotation=45)

        ax3 = axes[2]
        ax3.bar(df['Run'], df['Time'] * 1000, color=colors)
        ax3.set_ylabel('Time (ms)')
        ax3.set_title('Run Time')
        ax3.tick_params(axis='x', rotation=45)

        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=300, bbox_inches='tight')
        if show:
            plt.show()

        return fig


def run_mixture_comparison(name: str = "sine_square", n_samples: int = 2000,
                           kinds: Sequence[str] = ("sine", "square"),
                           save_plots: bool = True,
                           save_results: bool = True) -> AlgorithmComparison:
    """
    Convenience function to run the complete comparison on a synthetic mixture.

    Parameters:
    name: Name of the mixture for file naming
    n_samples: Number of observations to generate
    kinds: Source waveforms
    save_plots: Whether to save comparison plots
    save_results: Whether to save results to CSV

    Returns:
    AlgorithmComparison object with results
    """
    print(f"Running FastICA comparison on {name} mixture...")

    observed, sources, mixing = make_mixture(n_samples, kinds=kinds, random_state=42)

    comparison = AlgorithmComparison(random_state=42)
    results = comparison.compare_methods(observed, sources, mixing)

    print(f"\n{'='*60}")
    print(f"COMPARISON RESULTS FOR {name.upper()}")
    print(f"{'='*60}")

    for run_name, run in results.items():
        print(f"  {run_name}: min corr {run['min_correlation']:.4f}, "
              f"amari {run['amari_distance']:.4f}, {run['n_iter']} iterations, "
              f"{run['time'] * 1000:.1f} ms")

    best = min(results, key=lambda k: results[k]['amari_distance'])
    print(f"\nBest Run: {best} (Amari distance: {results[best]['amari_distance']:.6f})")

    if save_plots:
        plot_path = f"comparison_{name.lower()}.png"
        fig = comparison.plot_comparison_results(save_path=plot_path)
        plt.close(fig)
        print(f"Plots saved to {plot_path}")

    if save_results:
        csv_path = f"results_{name.lower()}.csv"
        comparison.export_results(csv_path)

    return comparison
