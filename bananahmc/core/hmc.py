import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import torch
from tqdm import tqdm

from bananahmc.core.exceptions import InvalidSampleCountError
from bananahmc.core.integrator import (
    PhaseState,
    Trajectory,
    check_step_params,
    hamiltonian,
    leapfrog,
    trajectory_to_tensor,
)
from bananahmc.diagnostics.metrics import compute_ess

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    """Record of one HMC iteration."""
    trajectory: Trajectory
    h0: float
    h1: float
    log_accept_ratio: float  # H0 - H1
    accepted: bool
    divergent: bool
    position: torch.Tensor  # emitted sample


class HMCSampler:
    """
    Fixed step size, fixed path length HMC with unit mass matrix.

    Each iteration resamples the momentum, integrates a leapfrog path and
    applies a Metropolis correction on the endpoint energies. The sampler owns
    its random generator so independent chains never share random state.
    """

    def __init__(
        self,
        target,
        step_size: float,
        n_steps: int,
        force_reject: bool = False,
        seed: Optional[int] = None,
    ):
        """
        Args:
            target: Object exposing log_prob(theta) and grad_log_prob(theta).
            step_size: Leapfrog step size epsilon.
            n_steps: Leapfrog steps per proposal.
            force_reject: Test hook. If True every proposal is rejected.
            seed: Seed for the owned generator. None draws a fresh seed.
        """
        check_step_params(step_size, n_steps)
        self.target = target
        self.step_size = step_size
        self.n_steps = n_steps
        self.force_reject = force_reject

        self.generator = torch.Generator()
        if seed is None:
            self.generator.seed()
        else:
            self.generator.manual_seed(seed)

    def draw_momentum(self) -> torch.Tensor:
        """p ~ N(0, I)"""
        return torch.randn(self.target.dim, generator=self.generator, dtype=torch.float64)

    def transition(self, theta0: torch.Tensor, momentum: Optional[torch.Tensor] = None) -> Transition:
        if momentum is None:
            momentum = self.draw_momentum()
        state0 = PhaseState(theta0, momentum)

        trajectory = leapfrog(state0, self.target.grad_log_prob, self.step_size, self.n_steps)
        state1 = trajectory[-1]

        h0 = hamiltonian(state0, self.target.log_prob)
        h1 = hamiltonian(state1, self.target.log_prob)
        log_ratio = h0 - h1
        divergent = not (math.isfinite(h0) and math.isfinite(h1))

        accepted = False
        if not self.force_reject:
            u = torch.rand(1, generator=self.generator, dtype=torch.float64).item()
            # log space comparison; a non-finite energy never accepts
            if not divergent and math.log(u) < log_ratio:
                accepted = True

        if divergent:
            logger.debug("Divergent transition: H0=%s, H1=%s", h0, h1)

        return Transition(
            trajectory=trajectory,
            h0=h0,
            h1=h1,
            log_accept_ratio=log_ratio,
            accepted=accepted,
            divergent=divergent,
            position=state1.position if accepted else theta0,
        )

    def run(
        self,
        initial_position,
        n_samples: int,
        initial_momentum=None,
        warmup: int = 0,
        seed: Optional[int] = None,
        progress: bool = False,
    ) -> Tuple[np.ndarray, List[np.ndarray], Dict[str, Any]]:
        """
        Run one chain.

        Args:
            initial_position: (2,) start position.
            n_samples: Number of post-warmup samples to keep.
            initial_momentum: Momentum for the first iteration. Later
                iterations always draw a fresh momentum.
            warmup: Iterations to run and discard before recording.
            seed: Reseed the owned generator before sampling.
            progress: Show a tqdm progress bar.

        Returns:
            chain: (n_samples, 2) positions.
            trajectories: n_samples arrays of shape (n_steps + 1, 2, 2), each
                stacking [position, momentum] along axis 1.
            stats: acceptance counts, divergences, timing and ESS.
        """
        if n_samples < 1:
            raise InvalidSampleCountError(f"n_samples must be at least 1, got {n_samples}")
        if warmup < 0:
            raise InvalidSampleCountError(f"warmup must be non-negative, got {warmup}")
        if seed is not None:
            self.generator.manual_seed(seed)

        current = torch.as_tensor(initial_position, dtype=torch.float64).clone()
        if current.shape != (self.target.dim,):
            raise ValueError(f"initial_position must have shape ({self.target.dim},), got {tuple(current.shape)}")
        momentum = None
        if initial_momentum is not None:
            momentum = torch.as_tensor(initial_momentum, dtype=torch.float64).clone()

        chain = []
        trajectories = []
        stats = {
            "accepted": 0,
            "attempts": 0,
            "accept_rate": 0.0,
            "divergent": 0,
            "total_time_sec": 0.0,
            "ess_min": 0.0,
            "ess_per_sec": 0.0,
        }

        logger.info(
            "Sampling %d draws (+%d warmup), step_size=%g, n_steps=%d",
            n_samples, warmup, self.step_size, self.n_steps,
        )
        start_time = time.time()

        iterator = tqdm(range(n_samples + warmup), desc="Sampling", disable=not progress)
        for step in iterator:
            result = self.transition(current, momentum)
            momentum = None

            stats["attempts"] += 1
            if result.accepted:
                stats["accepted"] += 1
            if result.divergent:
                stats["divergent"] += 1

            current = result.position
            if step >= warmup:
                chain.append(current.numpy().copy())
                trajectories.append(trajectory_to_tensor(result.trajectory).numpy())

        total_time = time.time() - start_time
        stats["total_time_sec"] = total_time
        stats["accept_rate"] = stats["accepted"] / stats["attempts"]

        chain_arr = np.array(chain)
        ess = compute_ess(chain_arr)
        min_ess = np.min(ess)
        stats["ess_min"] = float(min_ess)
        stats["ess_per_sec"] = float(min_ess / (total_time + 1e-9))

        logger.info(
            "Finished in %.2fs: accept rate %.3f, %d divergent, min ESS %.1f",
            total_time, stats["accept_rate"], stats["divergent"], stats["ess_min"],
        )
        return chain_arr, trajectories, stats


def run_chains(
    target,
    configs: Sequence,
    initial_position,
    initial_momentum=None,
    max_workers: Optional[int] = None,
) -> List[Tuple[np.ndarray, List[np.ndarray], Dict[str, Any]]]:
    """
    Run independent chains concurrently, one per HMCConfig.

    Each chain builds its own HMCSampler (and generator). Results come back in
    the order of configs.
    """
    def _run(config):
        sampler = HMCSampler(
            target,
            step_size=config.step_size,
            n_steps=config.n_steps,
            force_reject=config.force_reject,
            seed=config.seed,
        )
        return sampler.run(
            initial_position,
            config.n_samples,
            initial_momentum=initial_momentum,
            warmup=config.warmup,
        )

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(_run, configs))
