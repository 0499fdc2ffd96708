# SPDX-License-Identifier: MIT
"""
NEAT genome representation and the evolution engine.
"""

from .genes import ACTIVATIONS, HIDDEN, INPUT, OUTPUT, ConnectionGene, NodeGene  # noqa: F401
from .genome import Genome  # noqa: F401
from .population import Neat  # noqa: F401
from .species import Species  # noqa: F401

__all__ = [
    "ACTIVATIONS",
    "ConnectionGene",
    "Genome",
    "HIDDEN",
    "INPUT",
    "Neat",
    "NodeGene",
    "OUTPUT",
    "Species",
]
