import torch
from typing import Callable, List, NamedTuple

from bananahmc.core.exceptions import InvalidStepCountError, InvalidStepSizeError


class PhaseState(NamedTuple):
    """Phase space state (theta, p)."""
    position: torch.Tensor  # theta, (2,)
    momentum: torch.Tensor  # p, (2,)

    def negate_momentum(self) -> "PhaseState":
        return PhaseState(self.position, -self.momentum)


# States after each full leapfrog step, preceded by the starting state.
Trajectory = List[PhaseState]


def check_step_params(step_size: float, n_steps: int) -> None:
    if not step_size > 0 or step_size == float("inf"):
        raise InvalidStepSizeError(f"step_size must be positive and finite, got {step_size}")
    if n_steps < 1:
        raise InvalidStepCountError(f"n_steps must be at least 1, got {n_steps}")


def kinetic_energy(momentum: torch.Tensor) -> torch.Tensor:
    # Unit mass matrix: K(p) = 0.5 * p.p
    return 0.5 * torch.dot(momentum, momentum)


def hamiltonian(state: PhaseState, log_prob_fn: Callable[[torch.Tensor], torch.Tensor]) -> float:
    """H(theta, p) = -log pi(theta) + 0.5 * |p|^2"""
    return (-log_prob_fn(state.position) + kinetic_energy(state.momentum)).item()


def leapfrog_step(
    state: PhaseState,
    grad_fn: Callable[[torch.Tensor], torch.Tensor],
    step_size: float,
) -> PhaseState:
    """
    One leapfrog step on U(theta) = -log pi(theta).

    grad_fn returns the gradient of log pi, so the momentum kicks add it.
    """
    # Half step momentum
    p_half = state.momentum + 0.5 * step_size * grad_fn(state.position)

    # Full step position
    theta_new = state.position + step_size * p_half

    # Half step momentum
    p_new = p_half + 0.5 * step_size * grad_fn(theta_new)

    return PhaseState(theta_new, p_new)


def leapfrog(
    state: PhaseState,
    grad_fn: Callable[[torch.Tensor], torch.Tensor],
    step_size: float,
    n_steps: int,
) -> Trajectory:
    """
    Integrate n_steps leapfrog steps from state.

    Returns:
        Trajectory of length n_steps + 1; element 0 is the input state and
        element -1 is the proposal.
    """
    check_step_params(step_size, n_steps)

    trajectory = [state]
    for _ in range(n_steps):
        state = leapfrog_step(state, grad_fn, step_size)
        trajectory.append(state)
    return trajectory


def trajectory_to_tensor(trajectory: Trajectory) -> torch.Tensor:
    """Stack a trajectory into a (n_steps + 1, 2, D) tensor of [position, momentum]."""
    return torch.stack([torch.stack([s.position, s.momentum]) for s in trajectory])
