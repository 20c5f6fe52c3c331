#!/usr/bin/env python3
"""
Configuration loader for DoA tracker set-ups
Handles YAML parsing, validation, and tracker configuration objects
"""

import yaml
import numpy as np
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Any
from pathlib import Path
import logging

from .constants import TrackerDefaults, default_birth_mean, default_birth_covariance
from .validators import ConfigurationError, TrackerConfigValidator, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TrackerConfig:
    """
    Tracker configuration (immutable once constructed)

    Attributes:
        n_particles: Ensemble size Np
        meas_noise_sd_deg: Measurement angular noise standard deviation (degrees)
        noise_spec_den_deg: Process noise spectral density (degrees)
        dt: Frame interval in seconds
        multi_active: Multiple simultaneously active sources (unsupported)
        max_n_active_targets: Births are disallowed beyond this many targets
        noise_likelihood: Likelihood of an observation under the clutter hypothesis
        clutter_prior: Prior probability that an observation is clutter
        birth_prior: Prior probability that an observation is a new target
        death_likelihood: Best per-frame likelihood below which a target misses a frame
        death_frames: Consecutive missed frames before a target is pruned
        force_kill_targets: Remove the younger of two targets that come too close
        force_kill_distance: Distance under which two targets are duplicates
        m0: Prior mean of a newborn target
        p0: Prior covariance of a newborn target
        association_mode: "sample" (Monte-Carlo) or "map" (argmax) hypothesis choice
        history_length: Capacity of each particle's association history
        seed: Seed of the tracker's random generator (None for fresh entropy)
    """
    n_particles: int = TrackerDefaults.N_PARTICLES
    meas_noise_sd_deg: float = TrackerDefaults.MEAS_NOISE_SD_DEG
    noise_spec_den_deg: float = TrackerDefaults.NOISE_SPEC_DEN_DEG
    dt: float = TrackerDefaults.DT
    multi_active: bool = False
    max_n_active_targets: int = TrackerDefaults.MAX_N_ACTIVE_TARGETS
    noise_likelihood: float = TrackerDefaults.NOISE_LIKELIHOOD
    clutter_prior: float = TrackerDefaults.CLUTTER_PRIOR
    birth_prior: float = TrackerDefaults.BIRTH_PRIOR
    death_likelihood: float = TrackerDefaults.DEATH_LIKELIHOOD
    death_frames: int = TrackerDefaults.DEATH_FRAMES
    force_kill_targets: bool = TrackerDefaults.FORCE_KILL_TARGETS
    force_kill_distance: float = TrackerDefaults.FORCE_KILL_DISTANCE
    m0: np.ndarray = field(default_factory=default_birth_mean)
    p0: np.ndarray = field(default_factory=default_birth_covariance)
    association_mode: str = TrackerDefaults.ASSOCIATION_MODE
    history_length: int = TrackerDefaults.HISTORY_LENGTH
    seed: Optional[int] = None

    def __post_init__(self):
        try:
            m0 = np.array(self.m0, dtype=np.float64)
            p0 = np.array(self.p0, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Birth prior state must be numeric: {e}") from e
        # A flat list of six values is read as the diagonal of p0
        if p0.ndim == 1:
            p0 = np.diag(p0)
        m0.setflags(write=False)
        p0.setflags(write=False)
        object.__setattr__(self, 'm0', m0)
        object.__setattr__(self, 'p0', p0)

    def validate(self, strict: bool = True) -> ValidationResult:
        """Validate this configuration (raises ConfigurationError when strict)"""
        return TrackerConfigValidator.validate_config(self, strict=strict)

    def replace(self, **overrides) -> "TrackerConfig":
        """Return a copy with some fields replaced"""
        params = self.to_dict()
        params.update(overrides)
        return TrackerConfig.from_dict(params)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (YAML friendly)"""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, np.ndarray):
                value = value.tolist()
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "TrackerConfig":
        """Build a configuration from a dictionary, rejecting unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigurationError(f"Unknown tracker parameters: {', '.join(unknown)}")
        return cls(**params)


class ConfigLoader:
    """Load and validate tracker configurations"""

    def __init__(self, config_dir: str = "configs"):
        """
        Initialize configuration loader

        Args:
            config_dir: Directory containing configuration files
        """
        self.config_dir = Path(config_dir)
        self.trackers_dir = self.config_dir / "trackers"

    def _resolve(self, name: str) -> Path:
        """Map a configuration name or path onto a file"""
        filepath = Path(name)
        if filepath.suffix in ('.yaml', '.yml') and filepath.exists():
            return filepath

        if not name.endswith(('.yaml', '.yml')):
            name += '.yaml'
        return self.trackers_dir / name

    def load_tracker_config(self, name: str) -> TrackerConfig:
        """
        Load a tracker configuration from YAML

        Args:
            name: Name of the configuration file (with or without .yaml) or a path

        Returns:
            Validated TrackerConfig
        """
        filepath = self._resolve(name)
        if not filepath.exists():
            raise FileNotFoundError(f"Tracker configuration not found: {filepath}")

        logger.info(f"Loading tracker configuration: {filepath}")

        with open(filepath, 'r') as f:
            try:
                config_dict = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Malformed YAML in {filepath}: {e}") from e

        config = self.parse_tracker_config(config_dict)
        result = config.validate(strict=True)
        for message in result.warnings:
            logger.warning(f"{filepath.name}: {message}")
        return config

    def parse_tracker_config(self, config_dict: Any) -> TrackerConfig:
        """Parse a loaded YAML document into a TrackerConfig"""
        if not isinstance(config_dict, dict) or 'tracker' not in config_dict:
            raise ConfigurationError("Tracker configuration must contain a 'tracker' section")

        tracker = config_dict['tracker'] or {}
        params = dict(tracker.get('parameters') or {})

        # Newborn prior may be given as a nested block
        birth = tracker.get('birth')
        if birth:
            if 'mean' in birth:
                params['m0'] = birth['mean']
            if 'covariance' in birth:
                params['p0'] = birth['covariance']

        try:
            return TrackerConfig.from_dict(params)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid tracker parameters: {e}") from e

    def list_configs(self) -> List[str]:
        """List available tracker configuration files"""
        if not self.trackers_dir.exists():
            return []
        return sorted(file.stem for file in self.trackers_dir.glob("*.yaml"))

    def save_tracker_config(self, config: TrackerConfig, filename: str,
                            description: str = "") -> Path:
        """Save a tracker configuration to a YAML file"""
        if not filename.endswith('.yaml'):
            filename += '.yaml'

        self.trackers_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.trackers_dir / filename

        params = config.to_dict()
        birth = {'mean': params.pop('m0'), 'covariance': params.pop('p0')}
        config_dict = {
            'tracker': {
                'name': Path(filename).stem,
                'description': description,
                'parameters': params,
                'birth': birth,
            }
        }

        with open(filepath, 'w') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Saved tracker configuration to {filepath}")
        return filepath


def main():
    """Print the tracker configurations found in the configs directory"""
    import sys

    logging.basicConfig(level=logging.INFO)
    config_dir = sys.argv[1] if len(sys.argv) > 1 else "configs"
    loader = ConfigLoader(config_dir)

    names = loader.list_configs()
    if not names:
        print(f"No tracker configurations found in {loader.trackers_dir}")
        return

    for name in names:
        config = loader.load_tracker_config(name)
        print(f"{name:20} | Np={config.n_particles:3d} | dt={config.dt:.4f} s | "
              f"meas_sd={config.meas_noise_sd_deg:.1f} deg | mode={config.association_mode}")


if __name__ == "__main__":
    main()
