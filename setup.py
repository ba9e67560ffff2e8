#!/usr/bin/env python
"""
Setup and installation script for the Trajectory Mortality Pipeline.
"""

from setuptools import setup, find_packages

setup(
    name="trajectory-mortality",
    version="1.0.0",
    description="Cohort building, trajectory encoding and 5-year mortality modelling",
    python_requires=">=3.8",
    packages=find_packages(include=["trajectory_mortality", "trajectory_mortality.*"]),
    install_requires=[
        "pandas>=1.5",
        "numpy>=1.23",
        "scikit-learn>=1.2",
        "pyyaml>=6.0",
        "joblib>=1.2",
        "mlflow>=2.8",
        "faker>=18.0",
        "tqdm>=4.64",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "trajectory-mortality-train=trajectory_mortality.pipeline.training_pipeline:main",
            "trajectory-mortality-generate=trajectory_mortality.data_generation.generate_trajectory_data:main",
        ],
    },
)
