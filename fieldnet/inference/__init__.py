"""Inference over fieldnet networks."""

from .engine import InferenceEngine, as_features, forward

__all__ = ["InferenceEngine", "as_features", "forward"]
