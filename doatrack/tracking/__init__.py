"""
Direction-of-arrival target tracking module

This module provides a Rao-Blackwellized Monte Carlo Data Association
(RBMCDA) tracker for streams of 3-D direction observations:

- Constant velocity dynamic model discretised exactly (Van Loan)
- Per-target Kalman filtering
- Particle ensemble with deep-copy cloning
- Target / birth / clutter association with a death hypothesis
- Systematic resampling driven by the effective sample size
- Frame controller publishing the maximum-a-posteriori particle's targets
"""

from .motion_models import (
    ModelParameters,
    ConstantVelocityModel,
    MeasurementModel,
    build_models,
    chord_length,
    lti_disc,
)

from .kalman_filters import (
    kf_predict,
    kf_update,
    innovation,
    gaussian_log_likelihood,
)

from .tracker_base import (
    AssociationKind,
    AssociationRecord,
    Target,
    Particle,
    ParticleEnsemble,
)

from .association import (
    AssociationEngine,
    HypothesisSet,
)

from .resampling import (
    Resampler,
    effective_sample_size,
    systematic_resample,
)

from .particle_tracker import (
    Tracker3D,
    TrackerOutput,
    create_tracker,
)

from .scenario import (
    SourceTrajectory,
    unit_vector,
    to_azimuth_elevation,
    generate_observations,
    create_sample_scenario,
)

__all__ = [
    # Models
    'ModelParameters',
    'ConstantVelocityModel',
    'MeasurementModel',
    'build_models',
    'chord_length',
    'lti_disc',

    # Target filter
    'kf_predict',
    'kf_update',
    'innovation',
    'gaussian_log_likelihood',

    # Particle store
    'AssociationKind',
    'AssociationRecord',
    'Target',
    'Particle',
    'ParticleEnsemble',

    # Association and resampling
    'AssociationEngine',
    'HypothesisSet',
    'Resampler',
    'effective_sample_size',
    'systematic_resample',

    # Frame controller
    'Tracker3D',
    'TrackerOutput',
    'create_tracker',

    # Scenarios
    'SourceTrajectory',
    'unit_vector',
    'to_azimuth_elevation',
    'generate_observations',
    'create_sample_scenario',
]

__version__ = "1.0.0"
