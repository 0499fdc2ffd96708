# SPDX-License-Identifier: MIT
"""
Node and connection genes plus the activation functions they refer to.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict

INPUT, HIDDEN, OUTPUT = "input", "hidden", "output"
NODE_TYPES = (INPUT, HIDDEN, OUTPUT)


def _sigmoid(x: float) -> float:
    # math.exp overflows past ~709
    if x < -60.0:
        return 0.0
    if x > 60.0:
        return 1.0
    return 1.0 / (1.0 + math.exp(-x))


def _relu(x: float) -> float:
    return x if x > 0.0 else 0.0


def _leaky_relu(x: float) -> float:
    return x if x > 0.0 else x * 0.01


ACTIVATIONS: Dict[str, Callable[[float], float]] = {
    "tanh": math.tanh,
    "sigmoid": _sigmoid,
    "relu": _relu,
    "leaky_relu": _leaky_relu,
}
ACTIVATION_NAMES = tuple(ACTIVATIONS)
DEFAULT_ACTIVATION = "leaky_relu"
OUTPUT_ACTIVATION = "tanh"


def apply_activation(name: str, x: float) -> float:
    fn = ACTIVATIONS.get(name, math.tanh)
    return fn(x)


@dataclass
class NodeGene:
    id: int
    type: str
    activation: str = DEFAULT_ACTIVATION

    def copy(self) -> "NodeGene":
        return NodeGene(self.id, self.type, self.activation)


@dataclass
class ConnectionGene:
    innovation: int
    src: int
    dst: int
    weight: float
    enabled: bool = True

    def copy(self) -> "ConnectionGene":
        return ConnectionGene(self.innovation, self.src, self.dst, self.weight, self.enabled)
