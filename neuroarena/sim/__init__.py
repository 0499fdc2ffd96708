# SPDX-License-Identifier: MIT
"""
Arena simulation: environment, agents, sensing and reproduction.
"""

from .agent import Agent, Decision  # noqa: F401
from .environment import Biome, Environment, Food, Obstacle, SpatialGrid  # noqa: F401
from .features import FeaturePreprocessor  # noqa: F401
from .fitness import (  # noqa: F401
    ComplexityStats,
    FitnessStats,
    LifetimeWeights,
    complexity_stats,
    fitness_stats,
    lifetime_score,
    score_population,
)
from .reproduction import BirthResult, give_birth  # noqa: F401
from .vision import WorldView, sense  # noqa: F401
from .world import World, WorldStats  # noqa: F401

__all__ = [
    "Agent",
    "Biome",
    "BirthResult",
    "ComplexityStats",
    "Decision",
    "Environment",
    "FeaturePreprocessor",
    "FitnessStats",
    "LifetimeWeights",
    "Food",
    "Obstacle",
    "SpatialGrid",
    "World",
    "WorldStats",
    "WorldView",
    "complexity_stats",
    "fitness_stats",
    "give_birth",
    "lifetime_score",
    "score_population",
    "sense",
]
