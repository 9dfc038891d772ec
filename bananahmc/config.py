import json
from dataclasses import asdict, dataclass
from typing import Optional

from bananahmc.core.exceptions import InvalidSampleCountError
from bananahmc.core.integrator import check_step_params
from bananahmc.targets.banana import BananaTarget


@dataclass
class BananaConfig:
    a: float = 1.25
    b: float = 0.5
    r: float = 0.95

    def __post_init__(self):
        # Validates a and r
        self.to_target()

    def to_target(self) -> BananaTarget:
        return BananaTarget.create(self.a, self.b, self.r)

    def to_json(self):
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, json_str):
        return cls(**json.loads(json_str))


@dataclass
class HMCConfig:
    """Tuning parameters for one HMC chain."""
    step_size: float = 0.06
    n_steps: int = 39
    n_samples: int = 1
    warmup: int = 0
    seed: Optional[int] = None
    force_reject: bool = False

    def __post_init__(self):
        check_step_params(self.step_size, self.n_steps)
        if self.n_samples < 1:
            raise InvalidSampleCountError(f"n_samples must be at least 1, got {self.n_samples}")
        if self.warmup < 0:
            raise InvalidSampleCountError(f"warmup must be non-negative, got {self.warmup}")

    def to_json(self):
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, json_str):
        return cls(**json.loads(json_str))
