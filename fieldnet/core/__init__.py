"""Core numerical primitives for fieldnet."""

from . import activations, errors, kernel, network, quant, strategies, types

__all__ = ["activations", "errors", "kernel", "network", "quant", "strategies", "types"]
