"""Synthetic data generation."""

from .generate_trajectory_data import TrajectoryDataGenerator

__all__ = ['TrajectoryDataGenerator']
