import numpy as np
import torch
from bananahmc.core.hmc import HMCSampler
from bananahmc.diagnostics.metrics import summarize_chain
from bananahmc.targets.banana import BananaTarget


def run_banana_demo():
    print("--- Banana HMC Demo ---")
    target = BananaTarget.create(a=1.25, b=0.5, r=0.95)

    # 1. Ground truth from the exact sampler
    print("Drawing exact samples...")
    generator = torch.Generator().manual_seed(0)
    exact = target.sample(10000, generator=generator).numpy()
    print(f"Exact mean: {np.mean(exact, axis=0)} (analytic {target.mean()})")

    # 2. A single proposal, as animated on the slides
    print("Simulating one trajectory...")
    sampler = HMCSampler(target, step_size=0.06, n_steps=39, seed=1234)
    chain, trajectories, _ = sampler.run(torch.zeros(2), n_samples=1)
    path = trajectories[0][:, 0]
    print(f"Trajectory: {len(path)} points from {path[0]} to {path[-1]}")
    print(f"Emitted sample: {chain[0]}")

    # 3. A longer chain
    print("Running HMC chain...")
    samples, _, stats = sampler.run(torch.zeros(2), n_samples=2000, warmup=200, progress=True)
    summary = summarize_chain(samples, target)
    print(f"Accept rate: {stats['accept_rate']:.2f}")
    print(f"Mean: {summary['mean']} (abs err {summary['mean_abs_err']})")
    print(f"ESS: {summary['ess']}")

    # 4. Step size too large: the integrator diverges and every move is rejected
    print("\nRunning with step_size=10 ...")
    wild = HMCSampler(target, step_size=10.0, n_steps=39, seed=1234)
    _, _, wild_stats = wild.run(torch.zeros(2), n_samples=50)
    print(f"Accept rate: {wild_stats['accept_rate']:.2f}, divergent: {wild_stats['divergent']}")


if __name__ == "__main__":
    run_banana_demo()
