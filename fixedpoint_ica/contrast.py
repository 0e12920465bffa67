"""
Contrast functions for the FastICA fixed-point update.

A contrast function is the nonlinearity g used to approximate negentropy.
Every implementation evaluates g(u) and its derivative g'(u) elementwise over
a vector of projections u = w·x, writing into caller-provided buffers so the
solvers can reuse them across iterations.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Tuple


class ContrastFunction(ABC):
    """
    Base class for contrast functions.

    Implementations must be stateless with respect to evaluate() so they can
    be shared between worker threads operating on disjoint buffers.
    """

    @abstractmethod
    def evaluate(self, x: np.ndarray, output: np.ndarray, derivative: np.ndarray) -> None:
        """
        Evaluate the function and its derivative.

        Parameters:
        x: Projections w·x for every observation, shape (n,)
        output: Buffer receiving g(x), shape (n,)
        derivative: Buffer receiving g'(x), shape (n,)
        """
        pass

    def __call__(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Evaluate into fresh buffers and return (g(x), g'(x))."""
        x = np.asarray(x, dtype=np.float64)
        output = np.empty_like(x)
        derivative = np.empty_like(x)
        self.evaluate(x, output, derivative)
        return output, derivative

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class LogCosh(ContrastFunction):
    """
    Log-cosh contrast, G(u) = log(cosh(αu)) / α.

    A good general-purpose contrast; this is the default.
    g(u) = tanh(αu), g'(u) = α(1 - tanh²(αu))
    """

    def __init__(self, alpha: float = 1.0):
        if alpha <= 0:
            raise ValueError(f"alpha must be positive, got {alpha}")
        self.alpha = alpha

    def evaluate(self, x: np.ndarray, output: np.ndarray, derivative: np.ndarray) -> None:
        np.tanh(self.alpha * x, out=output)
        np.multiply(output, output, out=derivative)
        np.subtract(1.0, derivative, out=derivative)
        derivative *= self.alpha

    def __repr__(self) -> str:
        return f"LogCosh(alpha={self.alpha})"


class Exponential(ContrastFunction):
    """
    Exponential (Gaussian) contrast, G(u) = -exp(-αu²/2) / α.

    Preferable for highly super-Gaussian sources or when robustness matters.
    g(u) = u·exp(-αu²/2), g'(u) = (1 - αu²)·exp(-αu²/2)
    """

    def __init__(self, alpha: float = 1.0):
        if alpha <= 0:
            raise ValueError(f"alpha must be positive, got {alpha}")
        self.alpha = alpha

    def evaluate(self, x: np.ndarray, output: np.ndarray, derivative: np.ndarray) -> None:
        x2 = x * x
        e = np.exp(-0.5 * self.alpha * x2)
        np.multiply(x, e, out=output)
        np.multiply(1.0 - self.alpha * x2, e, out=derivative)

    def __repr__(self) -> str:
        return f"Exponential(alpha={self.alpha})"


class Kurtosis(ContrastFunction):
    """
    Kurtosis-based contrast, G(u) = u⁴/4.

    g(u) = u³, g'(u) = 3u²
    """

    def evaluate(self, x: np.ndarray, output: np.ndarray, derivative: np.ndarray) -> None:
        np.multiply(x, x, out=derivative)
        np.multiply(derivative, x, out=output)
        derivative *= 3.0
