"""
Test suite for the tracking system.

This package contains tests for all tracker components:
- Motion and measurement model construction
- Kalman filter predict/update
- Particle store (targets, particles, ensemble)
- Data association (target / birth / clutter / death)
- Resampling
- Frame controller (Tracker3D)

To run all tests:
    pytest doatrack/tracking/tests/

To run with coverage:
    pytest doatrack/tracking/tests/ --cov=doatrack.tracking --cov-report=html

Author: DoATrack Project
"""
