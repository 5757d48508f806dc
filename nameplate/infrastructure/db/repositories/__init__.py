"""Repositories over the SQLite record store."""

from .base import BaseRepository
from .ground_truth import GroundTruthRepository
from .images import ImageRepository
from .predictions import DEFAULT_MODEL_VERSION, PredictionRepository

__all__ = [
    "BaseRepository",
    "DEFAULT_MODEL_VERSION",
    "GroundTruthRepository",
    "ImageRepository",
    "PredictionRepository",
]
