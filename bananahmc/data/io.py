import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

import h5py
import numpy as np
import torch
from torch.utils.data import Dataset

logger = logging.getLogger(__name__)


@dataclass
class RunMetadata:
    name: str
    description: str
    num_samples: int
    target: Dict[str, float]  # a, b, r
    sampler: Dict[str, Any]  # HMCConfig fields
    creation_date: str
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_json(self):
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, json_str):
        return cls(**json.loads(json_str))


class HMCRunDataset(Dataset):
    """
    Read back a saved HMC run, one item per iteration.
    The file is opened lazily on first access.
    """
    def __init__(self, h5_path: str, mode: str = 'r'):
        self.h5_path = h5_path
        self.mode = mode
        self.file = None

        with h5py.File(h5_path, 'r') as f:
            if 'metadata' not in f.attrs:
                raise ValueError("HDF5 file missing required 'metadata' attribute.")
            self.metadata = RunMetadata.from_json(f.attrs['metadata'])
            self.length = self.metadata.num_samples

    def _open_file(self):
        if self.file is None:
            self.file = h5py.File(self.h5_path, self.mode)

    def __len__(self):
        return self.length

    def __getitem__(self, idx):
        """
        Returns dictionary of tensors: {'position': (2,), 'trajectory': (L+1, 2, 2)}
        """
        self._open_file()

        position = self.file['data']['chain'][idx]
        trajectory = self.file['data']['trajectories'][idx]

        return {
            'position': torch.from_numpy(position),
            'trajectory': torch.from_numpy(trajectory),
        }

    def chain(self) -> np.ndarray:
        self._open_file()
        return self.file['data']['chain'][:]

    def close(self):
        if self.file is not None:
            self.file.close()
            self.file = None


class RunWriter:
    """
    Writes a sampler run for downstream plotting.
    """
    @staticmethod
    def save_run(path: str,
                 chain: np.ndarray,
                 trajectories: List[np.ndarray],
                 metadata: RunMetadata):
        """
        chain: (N, 2)
        trajectories: N arrays of shape (L+1, 2, 2)
        """
        if chain.shape[0] != len(trajectories):
            raise ValueError(f"Mismatch in sample count: {chain.shape[0]} positions, {len(trajectories)} trajectories")
        if chain.shape[0] != metadata.num_samples:
            raise ValueError("metadata.num_samples does not match the chain length")

        traj_arr = np.stack(trajectories)

        with h5py.File(path, 'w') as f:
            f.attrs['metadata'] = metadata.to_json()

            grp = f.create_group("data")
            grp.create_dataset("chain", data=chain, compression="gzip", chunks=True)
            grp.create_dataset("trajectories", data=traj_arr, compression="gzip", chunks=True)

        logger.info("Run saved to %s with %d samples.", path, metadata.num_samples)
