import torch
import numpy as np
import pandas as pd
from bananahmc.config import HMCConfig
from bananahmc.core.hmc import run_chains
from bananahmc.diagnostics.metrics import summarize_chain
from bananahmc.targets.banana import BananaTarget


def run_sweep(target, step_sizes, path_length=2.34, steps=2000, warmup=500, seed=42):
    print(f"--- Step size sweep: {target} ---")

    # Fixed path length, so the step count shrinks as the step size grows
    configs = [
        HMCConfig(
            step_size=eps,
            n_steps=max(1, int(round(path_length / eps))),
            n_samples=steps,
            warmup=warmup,
            seed=seed + i,
        )
        for i, eps in enumerate(step_sizes)
    ]

    results = run_chains(target, configs, torch.zeros(2))

    rows = []
    for config, (samples, _, stats) in zip(configs, results):
        summary = summarize_chain(samples, target)
        rows.append({
            "StepSize": config.step_size,
            "NumSteps": config.n_steps,
            "AcceptRate": stats["accept_rate"],
            "Divergent": stats["divergent"],
            "ESSMin": stats["ess_min"],
            "ESSPerSec": stats["ess_per_sec"],
            "MeanErrX": summary["mean_abs_err"][0],
            "MeanErrY": summary["mean_abs_err"][1],
            "Time": stats["total_time_sec"],
        })
    return pd.DataFrame(rows)


def main():
    target = BananaTarget.create(a=1.25, b=0.5, r=0.95)
    df = run_sweep(target, [0.02, 0.06, 0.12, 0.25, 0.5])
    with pd.option_context("display.float_format", "{:.3f}".format):
        print(df.to_string(index=False))
    print(f"\nAnalytic mean: {np.round(target.mean(), 3)}")


if __name__ == "__main__":
    main()
