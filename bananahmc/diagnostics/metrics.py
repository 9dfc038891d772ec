import numpy as np
from typing import Any, Dict, Optional, Sequence


def compute_ess(chain: np.ndarray) -> np.ndarray:
    """
    Compute Effective Sample Size (ESS) for each dimension of the chain.
    Autocorrelations come from an FFT; the sum is truncated at the first lag
    whose autocorrelation drops below 0.05.

    Args:
        chain: (N, D) numpy array

    Returns:
        ess: (D,) numpy array
    """
    N, D = chain.shape
    if N < 2:
        return np.ones(D)

    ess = np.zeros(D)
    for d in range(D):
        x = chain[:, d]
        centered = x - np.mean(x)
        if not np.any(centered):
            # Constant trace (e.g. every proposal rejected)
            ess[d] = 1.0
            continue

        f = np.fft.fft(centered, n=2 * N)
        acf = np.real(np.fft.ifft(f * np.conjugate(f)))[:N]
        acf = acf / acf[0]

        # tau = 1 + 2 * sum(rho[1:])
        tau = 1.0
        for k in range(1, N):
            if acf[k] < 0.05:
                break
            tau += 2 * acf[k]

        ess[d] = N / tau

    return ess


def acceptance_rate(accepted: Sequence[bool]) -> float:
    accepted = np.asarray(accepted, dtype=bool)
    if accepted.size == 0:
        return 0.0
    return float(np.mean(accepted))


def summarize_chain(chain: np.ndarray, target: Optional[Any] = None) -> Dict[str, np.ndarray]:
    """
    Per-dimension summary of a chain.

    If target exposes an analytic mean() the absolute error of the chain mean
    is included as "mean_abs_err".
    """
    summary = {
        "mean": np.mean(chain, axis=0),
        "std": np.std(chain, axis=0),
        "ess": compute_ess(chain),
    }
    if target is not None and hasattr(target, "mean"):
        summary["mean_abs_err"] = np.abs(summary["mean"] - target.mean())
    return summary
