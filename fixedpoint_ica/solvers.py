"""
FastICA fixed-point solvers.

References:
- Hyvärinen, A (1999). Fast and Robust Fixed-Point Algorithms for
  Independent Component Analysis.

Both solvers work on whitened data X of shape (n, m) and an initial guess of
shape (k, m), and return the unmixing directions in whitened space as the
rows of a (k, m) matrix together with the number of iterations performed.
Non-convergence is not an error: the loops stop at max_iterations and the
current estimate is returned.
"""

import logging
import numpy as np
import scipy.linalg as la
from joblib import Parallel, delayed
from typing import List, Optional, Tuple

from .base import max_absolute_change
from .contrast import ContrastFunction

logger = logging.getLogger(__name__)


def fixed_point_update(X: np.ndarray, w0: np.ndarray, contrast: ContrastFunction,
                       wx: Optional[np.ndarray] = None,
                       gwx: Optional[np.ndarray] = None,
                       dgwx: Optional[np.ndarray] = None) -> np.ndarray:
    """
    One FastICA step, w+ = E{x g(w·x)} - E{g'(w·x)} w  (Hyvärinen, eq. 20).

    The result is not normalized; normalization is the caller's job.

    Parameters:
    X: Whitened data of shape (n, m)
    w0: Current direction, shape (m,)
    contrast: Nonlinearity g
    wx, gwx, dgwx: Optional work buffers of shape (n,)

    Returns:
    The updated direction, shape (m,)
    """
    n = X.shape[0]
    if wx is None:
        wx = np.empty(n)
    if gwx is None:
        gwx = np.empty(n)
    if dgwx is None:
        dgwx = np.empty(n)

    np.dot(X, w0, out=wx)
    contrast.evaluate(wx, gwx, dgwx)

    means = (gwx @ X) / n
    mean = np.mean(dgwx)
    return means - mean * w0


def deflation(X: np.ndarray, components: int, init: np.ndarray,
              contrast: ContrastFunction, max_iterations: int = 100,
              tolerance: float = 1e-3) -> Tuple[np.ndarray, List[int]]:
    """
    Estimate components one at a time with Gram-Schmidt deflation.

    Component i is always decorrelated from the already finished rows
    0..i-1, so the components are solved strictly in index order.
    Deflation acts on the previous iterate w0, so for i > 0 the fixed-point
    update is overwritten: once w0 is orthonormal to the finished rows the
    next delta is at rounding level and the component stops after a single
    iteration, as the orthonormalized initial row.

    Parameters:
    X: Whitened data of shape (n, m)
    components: Number of components k to estimate
    init: Initial guess of shape (k, m)
    contrast: Nonlinearity used in the fixed-point update
    max_iterations: Iteration cap per component
    tolerance: Relative convergence threshold

    Returns:
    (W of shape (k, m) with the directions as rows, iterations per component)
    """
    n, m = X.shape
    W = np.zeros((components, m))
    wx = np.empty(n)
    gwx = np.empty(n)
    dgwx = np.empty(n)
    n_iter = []

    for i in range(components):
        iterations = 0
        last_change = 1.0
        w0 = np.array(init[i], dtype=np.float64)
        w = w0.copy()

        while True:
            # Remove the projections of the previous iterate onto the
            # finished components. For i > 0 this replaces the update.
            if i > 0:
                w = w0 - (W[:i] @ w0) @ W[:i]

            w = w / np.linalg.norm(w)

            delta = max_absolute_change(w, w0)

            # The stop test sees the change produced by orthonormalization,
            # before any further fixed-point update is applied.
            if not (delta > tolerance * last_change and iterations < max_iterations):
                break

            w0 = w
            last_change = delta
            iterations += 1

            # Normalized at the top of the next pass
            w = fixed_point_update(X, w0, contrast, wx, gwx, dgwx)

        if iterations >= max_iterations:
            logger.warning(f"Component {i} reached the iteration cap ({max_iterations}) "
                           f"with change {delta:.3e}")
        else:
            logger.debug(f"Component {i} converged after {iterations} iterations")

        W[i] = w
        n_iter.append(iterations)

    return W, n_iter


def symmetric_decorrelation(W: np.ndarray) -> np.ndarray:
    """
    Orthogonalize the rows of W all at once, W <- (W W^T)^(-1/2) W.

    [E, D] = eig(W^T W) is replaced by the more stable [U, S] = svd(W):
    the singular values are the square roots of the eigenvalues, so the
    projection basis reduces to K = U S^(-1) U^T. Zero singular values are
    left out of the sum.
    """
    U, S, _ = la.svd(W, full_matrices=False)
    inverse = np.zeros_like(S)
    nonzero = S != 0.0
    inverse[nonzero] = 1.0 / S[nonzero]
    K = (U * inverse) @ U.T
    return K @ W


def parallel(X: np.ndarray, components: int, init: np.ndarray,
             contrast: ContrastFunction, max_iterations: int = 100,
             tolerance: float = 1e-3, n_jobs: Optional[int] = -1) -> Tuple[np.ndarray, int]:
    """
    Estimate all components simultaneously with symmetric orthogonalization.

    Each iteration decorrelates W, checks convergence, then updates every row
    independently on a joblib thread pool. The rows only read the shared X
    and the previous iterate, and the pool is joined before the next
    decorrelation reads the full matrix.

    Parameters:
    X: Whitened data of shape (n, m)
    components: Number of components k to estimate
    init: Initial guess of shape (k, m)
    contrast: Nonlinearity used in the fixed-point update
    max_iterations: Iteration cap
    tolerance: Relative convergence threshold
    n_jobs: Worker threads for the row updates (joblib semantics)

    Returns:
    (W of shape (k, m) with orthonormal rows, number of iterations)
    """
    W = np.array(init[:components], dtype=np.float64)
    W0 = W
    iterations = 0
    last_change = 1.0

    with Parallel(n_jobs=n_jobs, prefer="threads") as pool:
        while True:
            W = symmetric_decorrelation(W)

            delta = max_absolute_change(W, W0)

            if delta < tolerance * last_change or iterations >= max_iterations:
                break

            W0 = W
            last_change = delta
            iterations += 1

            rows = pool(delayed(fixed_point_update)(X, W0[i], contrast)
                        for i in range(components))
            W = np.vstack(rows)

    if iterations >= max_iterations:
        logger.warning(f"Parallel FastICA reached the iteration cap ({max_iterations}) "
                       f"with change {delta:.3e}")
    else:
        logger.debug(f"Parallel FastICA converged after {iterations} iterations")

    return W, iterations
