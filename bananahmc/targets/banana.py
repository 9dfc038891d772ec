import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import torch

from bananahmc.core.exceptions import InvalidParameterError, InvalidSampleCountError


@dataclass(frozen=True)
class BananaTarget:
    """
    Banana distribution: a curved warp of a correlated bivariate normal.

    Generative form:
        (u, v) ~ N(0, [[1, r], [r, 1]])
        x = a * u
        y = v / a + b * (u^2 + a^2)

    Density (log pi(x, y)):
        Invert to u = x / a, v = a * (y - b * (u^2 + a^2)) and evaluate the
        bivariate normal log-density at (u, v). The inverse map has a
        triangular Jacobian with diagonal (1/a, a), so log|det J| = 0.
    """
    a: float = 1.25
    b: float = 0.5
    r: float = 0.95

    def __post_init__(self):
        for name in ("a", "b", "r"):
            if not math.isfinite(getattr(self, name)):
                raise InvalidParameterError(f"{name} must be finite, got {getattr(self, name)}")
        if self.a == 0:
            raise InvalidParameterError("a must be non-zero")
        if not -1.0 < self.r < 1.0:
            raise InvalidParameterError(f"r must lie in (-1, 1), got {self.r}")

    @classmethod
    def create(cls, a: float, b: float, r: float) -> "BananaTarget":
        return cls(a=float(a), b=float(b), r=float(r))

    @property
    def dim(self) -> int:
        return 2

    def _inverse(self, theta: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        u = theta[:, 0] / self.a
        v = self.a * (theta[:, 1] - self.b * (u**2 + self.a**2))
        return u, v

    def log_prob(self, theta: torch.Tensor) -> torch.Tensor:
        # theta: (2,) or (B, 2)
        squeeze = theta.dim() == 1
        if squeeze:
            theta = theta.unsqueeze(0)

        u, v = self._inverse(theta)
        one_m_r2 = 1.0 - self.r**2

        quad = (u**2 - 2 * self.r * u * v + v**2) / one_m_r2
        lp = -0.5 * quad - np.log(2 * np.pi) - 0.5 * np.log(one_m_r2)

        return lp.squeeze(0) if squeeze else lp

    def grad_log_prob(self, theta: torch.Tensor) -> torch.Tensor:
        """Analytic gradient of log_prob with respect to (x, y)."""
        squeeze = theta.dim() == 1
        if squeeze:
            theta = theta.unsqueeze(0)

        u, v = self._inverse(theta)
        one_m_r2 = 1.0 - self.r**2

        # d log N / d(u, v)
        g_u = -(u - self.r * v) / one_m_r2
        g_v = -(v - self.r * u) / one_m_r2

        # du/dx = 1/a, dv/dx = -2 b u, dv/dy = a
        g_x = g_u / self.a - 2 * self.b * u * g_v
        g_y = self.a * g_v

        grad = torch.stack([g_x, g_y], dim=-1)
        return grad.squeeze(0) if squeeze else grad

    def log_density(self, x: float, y: float) -> float:
        theta = torch.tensor([x, y], dtype=torch.float64)
        return self.log_prob(theta).item()

    def gradient(self, x: float, y: float) -> Tuple[float, float]:
        theta = torch.tensor([x, y], dtype=torch.float64)
        g = self.grad_log_prob(theta)
        return g[0].item(), g[1].item()

    def sample(self, n: int, generator: Optional[torch.Generator] = None) -> torch.Tensor:
        """Exact i.i.d. draws, shape (n, 2)."""
        if n < 1:
            raise InvalidSampleCountError(f"n must be at least 1, got {n}")

        z = torch.randn(n, 2, generator=generator, dtype=torch.float64)

        # Cholesky factor of [[1, r], [r, 1]]
        u = z[:, 0]
        v = self.r * z[:, 0] + math.sqrt(1.0 - self.r**2) * z[:, 1]

        x = u * self.a
        y = v / self.a + self.b * (u**2 + self.a**2)
        return torch.stack([x, y], dim=1)

    def mean(self) -> np.ndarray:
        # E[u^2] = 1, E[v] = 0
        return np.array([0.0, self.b * (1.0 + self.a**2)])

    def covariance(self) -> np.ndarray:
        # Var(u^2) = 2 and Cov(v, u^2) = 0 for a centered normal pair
        cov_xy = self.r
        var_y = 1.0 / self.a**2 + 2.0 * self.b**2
        return np.array([[self.a**2, cov_xy], [cov_xy, var_y]])
