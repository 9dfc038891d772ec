import torch
import numpy as np
import pytest
from bananahmc.config import HMCConfig
from bananahmc.core.exceptions import (
    InvalidSampleCountError,
    InvalidStepCountError,
    InvalidStepSizeError,
)
from bananahmc.core.hmc import HMCSampler, run_chains
from bananahmc.core.integrator import PhaseState, leapfrog
from bananahmc.targets.banana import BananaTarget


class GaussianTarget:
    """Standard normal in 2-D, to check the sampler against a plain target."""
    dim = 2

    def log_prob(self, theta):
        return -0.5 * torch.sum(theta**2, dim=-1) - np.log(2 * np.pi)

    def grad_log_prob(self, theta):
        return -theta


@pytest.fixture
def banana():
    return BananaTarget.create(a=1.25, b=0.5, r=0.95)


def test_end_to_end_single_trajectory(banana):
    """One proposal from the origin is reproducible bit for bit under a fixed seed."""
    sampler = HMCSampler(banana, step_size=0.06, n_steps=39, seed=2024)
    chain, trajectories, stats = sampler.run(torch.zeros(2), n_samples=1)

    assert chain.shape == (1, 2)
    assert len(trajectories) == 1
    assert trajectories[0].shape == (40, 2, 2)
    assert np.array_equal(trajectories[0][0, 0], [0.0, 0.0])
    assert stats["attempts"] == 1

    rerun = HMCSampler(banana, step_size=0.06, n_steps=39, seed=2024)
    chain2, trajectories2, _ = rerun.run(torch.zeros(2), n_samples=1)
    assert np.array_equal(chain, chain2)
    assert np.array_equal(trajectories[0], trajectories2[0])

    # The path is the leapfrog integration of the first momentum draw
    p0 = torch.randn(2, generator=torch.Generator().manual_seed(2024), dtype=torch.float64)
    expected = leapfrog(PhaseState(torch.zeros(2, dtype=torch.float64), p0), banana.grad_log_prob, 0.06, 39)
    expected_positions = np.array([s.position.numpy() for s in expected])
    assert np.array_equal(trajectories[0][:, 0], expected_positions)

    # Emitted sample is either the endpoint or the start
    assert np.array_equal(chain[0], expected_positions[-1]) or np.array_equal(chain[0], [0.0, 0.0])


def test_forced_rejection_keeps_position(banana):
    sampler = HMCSampler(banana, step_size=0.06, n_steps=39, force_reject=True, seed=1)
    start = torch.tensor([0.5, 1.5])
    chain, trajectories, stats = sampler.run(start, n_samples=25)

    assert stats["accepted"] == 0
    for i in range(len(chain) - 1):
        assert np.array_equal(chain[i + 1], chain[i])
    np.testing.assert_array_equal(chain[0], [0.5, 1.5])

    # Momentum is still redrawn every iteration
    first_momenta = np.array([t[0, 1] for t in trajectories])
    assert len(np.unique(first_momenta[:, 0])) == 25


def test_divergent_integration_is_rejected(banana):
    """A step size far too large drives the energy non-finite; nothing is accepted."""
    sampler = HMCSampler(banana, step_size=1e3, n_steps=39, seed=3)
    chain, trajectories, stats = sampler.run(torch.zeros(2), n_samples=20)

    assert stats["divergent"] == 20
    assert stats["accepted"] == 0
    assert np.all(chain == 0.0)
    assert not np.all(np.isfinite(trajectories[0][-1]))


def test_nonfinite_energy_transition_flags(banana):
    sampler = HMCSampler(banana, step_size=1e3, n_steps=39, seed=4)
    result = sampler.transition(torch.zeros(2, dtype=torch.float64))

    assert result.divergent
    assert not result.accepted
    assert np.isfinite(result.h0)
    assert torch.equal(result.position, torch.zeros(2, dtype=torch.float64))


def test_accept_uses_energy_difference(banana):
    """With a tiny step the energy error vanishes, so every proposal is accepted."""
    sampler = HMCSampler(banana, step_size=1e-4, n_steps=5, seed=0)
    theta0 = torch.tensor([0.1, 1.3], dtype=torch.float64)
    result = sampler.transition(theta0)

    assert abs(result.log_accept_ratio) < 1e-6
    assert result.accepted
    assert torch.equal(result.position, result.trajectory[-1].position)


def test_initial_momentum_used_once(banana):
    p = torch.tensor([0.25, -0.75], dtype=torch.float64)
    sampler = HMCSampler(banana, step_size=0.06, n_steps=10, seed=9)
    _, trajectories, _ = sampler.run(torch.zeros(2), n_samples=3, initial_momentum=p)

    assert np.array_equal(trajectories[0][0, 1], p.numpy())
    assert not np.array_equal(trajectories[1][0, 1], p.numpy())


def test_trajectory_starts_at_previous_sample(banana):
    sampler = HMCSampler(banana, step_size=0.06, n_steps=39, seed=11)
    start = torch.tensor([0.0, 1.0])
    chain, trajectories, _ = sampler.run(start, n_samples=30)

    np.testing.assert_array_equal(trajectories[0][0, 0], [0.0, 1.0])
    for i in range(1, len(chain)):
        assert np.array_equal(trajectories[i][0, 0], chain[i - 1])


def test_warmup_is_discarded(banana):
    sampler = HMCSampler(banana, step_size=0.06, n_steps=5, seed=12)
    chain, trajectories, stats = sampler.run(torch.zeros(2), n_samples=10, warmup=15)

    assert chain.shape == (10, 2)
    assert len(trajectories) == 10
    assert stats["attempts"] == 25


def test_gaussian_target_moments():
    sampler = HMCSampler(GaussianTarget(), step_size=0.2, n_steps=10, seed=999)
    samples, _, stats = sampler.run(torch.zeros(2), n_samples=3000, warmup=100)

    assert stats["accept_rate"] > 0.9
    assert np.all(np.abs(np.mean(samples, axis=0)) < 0.1)
    assert np.all(np.abs(np.std(samples, axis=0) - 1.0) < 0.1)


def test_banana_chain_mean(banana):
    sampler = HMCSampler(banana, step_size=0.06, n_steps=39, seed=7)
    samples, _, stats = sampler.run(torch.zeros(2), n_samples=1500, warmup=200)

    assert samples.shape == (1500, 2)
    assert not np.isnan(samples).any()
    assert stats["accept_rate"] > 0.5
    np.testing.assert_allclose(np.mean(samples, axis=0), banana.mean(), atol=0.35)


def test_reseed_in_run(banana):
    sampler = HMCSampler(banana, step_size=0.06, n_steps=10)
    c1, _, _ = sampler.run(torch.zeros(2), n_samples=20, seed=5)
    c2, _, _ = sampler.run(torch.zeros(2), n_samples=20, seed=5)
    assert np.array_equal(c1, c2)


@pytest.mark.parametrize("step_size", [0.0, -1.0])
def test_invalid_step_size(banana, step_size):
    with pytest.raises(InvalidStepSizeError):
        HMCSampler(banana, step_size=step_size, n_steps=10)


def test_invalid_step_count(banana):
    with pytest.raises(InvalidStepCountError):
        HMCSampler(banana, step_size=0.1, n_steps=0)


def test_invalid_sample_count(banana):
    sampler = HMCSampler(banana, step_size=0.1, n_steps=10)
    with pytest.raises(InvalidSampleCountError):
        sampler.run(torch.zeros(2), n_samples=0)
    with pytest.raises(InvalidSampleCountError):
        sampler.run(torch.zeros(2), n_samples=5, warmup=-1)


def test_invalid_start_shape(banana):
    sampler = HMCSampler(banana, step_size=0.1, n_steps=10)
    with pytest.raises(ValueError):
        sampler.run(torch.zeros(3), n_samples=5)


def test_run_chains_matches_sequential(banana):
    configs = [
        HMCConfig(step_size=0.06, n_steps=20, n_samples=30, seed=1),
        HMCConfig(step_size=0.12, n_steps=10, n_samples=30, seed=2),
        HMCConfig(step_size=0.06, n_steps=20, n_samples=30, seed=1, force_reject=True),
    ]
    results = run_chains(banana, configs, torch.zeros(2), max_workers=3)

    assert len(results) == 3
    for config, (chain, trajectories, _) in zip(configs, results):
        sampler = HMCSampler(banana, config.step_size, config.n_steps,
                             force_reject=config.force_reject, seed=config.seed)
        expected, expected_traj, _ = sampler.run(torch.zeros(2), config.n_samples)
        assert np.array_equal(chain, expected)
        assert np.array_equal(trajectories[-1], expected_traj[-1])

    assert results[2][2]["accepted"] == 0
