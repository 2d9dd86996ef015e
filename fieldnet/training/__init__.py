"""Online training for fieldnet networks."""

from .trainer import InvertedDropout, LearningRateSchedule, TrainingEngine

__all__ = ["InvertedDropout", "LearningRateSchedule", "TrainingEngine"]
