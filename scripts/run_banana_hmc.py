import argparse
import logging
import os
import sys

import numpy as np

from bananahmc.config import BananaConfig, HMCConfig
from bananahmc.core.hmc import HMCSampler
from bananahmc.data.io import RunMetadata, RunWriter


def run_banana_hmc(output_path, banana, hmc, start=(0.0, 0.0), momentum=None, progress=True):
    target = banana.to_target()
    print(f"Target: banana(a={banana.a}, b={banana.b}, r={banana.r})")
    print(f"Analytic mean: {target.mean()}")

    sampler = HMCSampler(
        target,
        step_size=hmc.step_size,
        n_steps=hmc.n_steps,
        force_reject=hmc.force_reject,
        seed=hmc.seed,
    )
    chain, trajectories, stats = sampler.run(
        np.asarray(start, dtype=np.float64),
        hmc.n_samples,
        initial_momentum=momentum,
        warmup=hmc.warmup,
        progress=progress,
    )
    print(f"Accept rate: {stats['accept_rate']:.2f}, divergent: {stats['divergent']}")
    print(f"Chain mean: {np.mean(chain, axis=0)}")

    meta = RunMetadata(
        name="banana_hmc",
        description=f"Leapfrog HMC on banana target, start={tuple(start)}",
        num_samples=chain.shape[0],
        target={"a": banana.a, "b": banana.b, "r": banana.r},
        sampler={
            "step_size": hmc.step_size,
            "n_steps": hmc.n_steps,
            "n_samples": hmc.n_samples,
            "warmup": hmc.warmup,
            "seed": hmc.seed,
            "force_reject": hmc.force_reject,
        },
        creation_date=str(np.datetime64('now')),
        stats=stats,
    )
    RunWriter.save_run(output_path, chain, trajectories, meta)
    return chain, trajectories, stats


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run leapfrog HMC on the banana distribution.")
    parser.add_argument("--output", default="runs/banana_hmc.h5", help="HDF5 output path")
    parser.add_argument("--a", type=float, default=1.25)
    parser.add_argument("--b", type=float, default=0.5)
    parser.add_argument("--r", type=float, default=0.95)
    parser.add_argument("--step-size", type=float, default=0.06)
    parser.add_argument("--n-steps", type=int, default=39)
    parser.add_argument("--n-samples", type=int, default=1000)
    parser.add_argument("--warmup", type=int, default=0)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--force-reject", action="store_true",
                        help="Reject every proposal (test hook)")
    parser.add_argument("--start", type=float, nargs=2, default=[0.0, 0.0], metavar=("X", "Y"))
    parser.add_argument("--momentum", type=float, nargs=2, default=None, metavar=("PX", "PY"),
                        help="Momentum for the first iteration")
    parser.add_argument("--config", default=None,
                        help="JSON file with an HMCConfig; overrides the tuning flags")
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(
        stream=sys.stdout,
        format='%(filename)15s %(levelname)10s %(asctime)s\n'
               '%(message)s',
        level=logging.INFO)

    args = parse_args(argv)
    banana = BananaConfig(a=args.a, b=args.b, r=args.r)
    if args.config is not None:
        with open(args.config, "r", encoding="utf-8") as f:
            hmc = HMCConfig.from_json(f.read())
    else:
        hmc = HMCConfig(
            step_size=args.step_size,
            n_steps=args.n_steps,
            n_samples=args.n_samples,
            warmup=args.warmup,
            seed=args.seed,
            force_reject=args.force_reject,
        )

    out_dir = os.path.dirname(args.output)
    if out_dir and not os.path.exists(out_dir):
        os.makedirs(out_dir)
    run_banana_hmc(args.output, banana, hmc, start=args.start, momentum=args.momentum)


if __name__ == "__main__":
    main()
