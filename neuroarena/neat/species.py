# SPDX-License-Identifier: MIT
"""
Species bookkeeping for compatibility-based speciation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .genome import Genome


@dataclass
class Species:
    species_id: int
    representative: Genome
    members: List[Genome] = field(default_factory=list)
    best_fitness: float = float("-inf")
    stagnation: int = 0

    def matches(self, genome: Genome, threshold: float) -> bool:
        return genome.compatibility_distance(self.representative) < threshold

    def mean_fitness(self) -> float:
        if not self.members:
            return 0.0
        return sum(g.fitness for g in self.members) / len(self.members)

    def update_stagnation(self) -> None:
        """Reset the counter on a new best member, otherwise count one more generation."""
        if not self.members:
            return
        top = max(g.fitness for g in self.members)
        if top > self.best_fitness:
            self.best_fitness = top
            self.stagnation = 0
        else:
            self.stagnation += 1
