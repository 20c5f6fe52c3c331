#!/usr/bin/env python3
"""
DoATrack Setup Script
Packaging for the particle filter direction-of-arrival tracker
"""

from setuptools import setup, find_packages


setup(
    name="doatrack",
    version="1.0.0",
    description="Rao-Blackwellized particle filter multi-target tracker for DoA observations",
    python_requires=">=3.8",
    packages=find_packages(include=["doatrack", "doatrack.*"]),
    install_requires=[
        "numpy>=1.20.0",
        "scipy>=1.7.0",
        "matplotlib>=3.3.0",
        "PyYAML>=5.4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-cov",
        ],
    },
    entry_points={
        "console_scripts": [
            "doatrack-demo=doatrack.tracking.tracking_demo:main",
            "doatrack-configs=doatrack.config_loader:main",
        ],
    },
)
