# SPDX-License-Identifier: MIT
"""
Fitness and complexity summaries over agents and genomes, plus the optional
composite lifetime score.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Sequence

import numpy as np

from neuroarena.neat.genome import Genome
from neuroarena.sim.agent import Agent


@dataclass
class FitnessStats:
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    median: float = 0.0
    total: float = 0.0


@dataclass
class ComplexityStats:
    avg_nodes: float = 0.0
    avg_connections: float = 0.0
    max_nodes: int = 0
    max_connections: int = 0

    @property
    def score(self) -> float:
        return self.avg_nodes + 2.0 * self.avg_connections


def fitness_stats(values: Iterable[float]) -> FitnessStats:
    arr = np.asarray(list(values), dtype=np.float64)
    if arr.size == 0:
        return FitnessStats()
    return FitnessStats(
        min=float(arr.min()),
        max=float(arr.max()),
        avg=float(arr.mean()),
        median=float(np.median(arr)),
        total=float(arr.sum()),
    )


def complexity_stats(genomes: Sequence[Genome]) -> ComplexityStats:
    if not genomes:
        return ComplexityStats()
    sizes = [g.complexity() for g in genomes]
    nodes = [s["nodes"] for s in sizes]
    conns = [s["connections"] for s in sizes]
    return ComplexityStats(
        avg_nodes=float(np.mean(nodes)),
        avg_connections=float(np.mean(conns)),
        max_nodes=max(nodes),
        max_connections=max(conns),
    )


def top_genomes(genomes: Iterable[Genome], count: int) -> List[Genome]:
    return sorted(genomes, key=lambda g: g.fitness, reverse=True)[: max(count, 0)]


# ---------- 生涯スコア ----------
@dataclass(frozen=True)
class LifetimeWeights:
    survival_per_tick: float = 1.0 / 2000.0
    max_survival: float = 2.0
    mass_reference: float = 30.0
    mass_growth: float = 35.0
    kill_base: float = 400.0
    kill_scaling: float = 40.0
    kill_exponent: float = 1.5
    food: float = 20.0
    family_member: float = 8.0
    birth: float = 10.0
    movement_bonus: float = 200.0
    max_movement_bonus: float = 50.0
    exploration: float = 100.0
    max_exploration: float = 40.0
    low_movement: float = 0.15
    low_movement_multiplier: float = 0.5
    moderate_movement: float = 0.3
    moderate_movement_multiplier: float = 0.7
    idle_threshold: int = 50  # tick
    idle_divisor: float = 200.0
    max_idle_penalty: float = 0.9
    extra_node: float = 1.0
    extra_connection: float = 0.3
    has_kills: float = 40.0
    high_food: float = 80.0
    high_food_threshold: int = 15
    high_mass: float = 150.0
    high_mass_threshold: float = 80.0
    has_children: float = 120.0
    efficiency: float = 500.0
    efficiency_min_distance: float = 100.0
    max_efficiency: float = 200.0
    growth_rate: float = 1000.0
    growth_min_age: int = 200  # tick
    max_growth_rate: float = 150.0
    cap: float = 10000.0


LIFETIME_WEIGHTS = LifetimeWeights()


def lifetime_score(
    agent: Agent,
    family_size: int,
    initial_mass: float = 30.0,
    weights: LifetimeWeights = LIFETIME_WEIGHTS,
) -> float:
    """Composite score of an agent's whole life so far.

    Additive terms for survival, mass, combat, food, family, and births are
    scaled by a movement multiplier, then by an idle multiplier. Movement,
    complexity, specialization, efficiency and growth bonuses follow, and the
    total is capped at ``weights.cap``.
    """
    w = weights
    age = agent.age
    score = min(age * w.survival_per_tick, w.max_survival)
    if agent.mass > w.mass_reference:
        score += math.log2(agent.mass / w.mass_reference) * w.mass_growth
    if agent.kills:
        score += agent.kills * w.kill_base
        if agent.kills > 1:
            score += agent.kills ** w.kill_exponent * w.kill_scaling
    score += agent.food_eaten * w.food
    score += family_size * w.family_member
    score += agent.births_given * w.birth

    if age > 0:
        ratio = agent.distance_traveled / age
        if ratio < w.low_movement:
            score *= w.low_movement_multiplier
        elif ratio < w.moderate_movement:
            score *= w.moderate_movement_multiplier
        score += min(w.max_movement_bonus, ratio * w.movement_bonus)
        score += min(w.max_exploration, ratio * w.exploration)

    if agent.idle_ticks > w.idle_threshold:
        score *= 1.0 - min(w.max_idle_penalty, agent.idle_ticks / w.idle_divisor)

    genome = agent.genome
    extra_nodes = len(genome.nodes) - (genome.input_size + genome.output_size)
    extra_conns = len(genome.connections) - genome.input_size * genome.output_size
    score += max(extra_nodes, 0) * w.extra_node + max(extra_conns, 0) * w.extra_connection

    if agent.kills > 0:
        score += w.has_kills
    if agent.food_eaten > w.high_food_threshold:
        score += w.high_food
    if agent.mass > w.high_mass_threshold:
        score += w.high_mass
    if agent.children_ids:
        score += w.has_children

    if agent.distance_traveled >= w.efficiency_min_distance and agent.food_eaten:
        efficiency = agent.food_eaten / (agent.distance_traveled / 100.0)
        score += min(efficiency * w.efficiency, w.max_efficiency)
    if age >= w.growth_min_age:
        gained = max(0.0, agent.mass - initial_mass)
        score += min(gained / age * w.growth_rate, w.max_growth_rate)

    return min(score, w.cap)


def score_population(agents: Sequence[Agent], initial_mass: float = 30.0) -> None:
    """Overwrite each agent's genome fitness with its lifetime score."""
    families = Counter(a.family_lineage for a in agents)
    for agent in agents:
        agent.genome.fitness = lifetime_score(agent, families[agent.family_lineage], initial_mass)
