# SPDX-License-Identifier: MIT
"""
In-simulation reproduction: agent creation and ``give_birth``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from loguru import logger

from neuroarena.core.config import ReproductionConfig
from neuroarena.neat.genome import Genome
from neuroarena.sim.agent import Agent

if TYPE_CHECKING:
    from neuroarena.sim.world import World

POPULATION_CAP = "population_cap"


@dataclass
class BirthResult:
    success: bool
    baby: Optional[Agent] = None
    reason: str = ""


def reproduction_blocker(agent: Agent, tick: int, config: ReproductionConfig) -> Optional[str]:
    """Name of the first unmet condition, or ``None`` when the agent may reproduce."""
    if agent.mass < config.min_mass:
        return "mass"
    if agent.age < config.min_age:
        return "age"
    if agent.kills <= 0 and agent.food_eaten < config.food_threshold:
        return "food"
    if tick - agent.last_reproduction_tick < config.cooldown:
        return "cooldown"
    return None


def create_agent(
    world: "World",
    genome: Genome,
    x: Optional[float] = None,
    y: Optional[float] = None,
    parent: Optional[Agent] = None,
) -> Agent:
    cfg = world.config.agent
    if x is None or y is None:
        x, y = world.environment.free_position(math.sqrt(cfg.initial_mass) * 2.5)
    agent_id = world.next_agent_id()
    return Agent(
        agent_id,
        genome,
        x,
        y,
        mass=cfg.initial_mass,
        energy=cfg.initial_energy,
        heading=float(world.rng.random() * math.tau),
        generation=world.generation if parent is None else parent.generation + 1,
        parent_id=None if parent is None else parent.id,
        family_lineage=None if parent is None else parent.family_lineage,
        last_reproduction_tick=world.tick,
    )


def give_birth(parent: Agent, world: "World") -> BirthResult:
    cfg = world.config.reproduction
    if world.population >= world.config.world.max_population:
        return BirthResult(False, reason=POPULATION_CAP)
    blocker = reproduction_blocker(parent, world.tick, cfg)
    if blocker is not None:
        return BirthResult(False, reason=blocker)

    genome = parent.genome.clone()
    genome.fitness = 0.0
    world.mutate(genome)

    angle = world.rng.random() * math.tau
    dist = cfg.spawn_distance_min + world.rng.random() * (cfg.spawn_distance_max - cfg.spawn_distance_min)
    x = min(max(parent.x + math.cos(angle) * dist, 0.0), world.width)
    y = min(max(parent.y + math.sin(angle) * dist, 0.0), world.height)

    baby = create_agent(world, genome, x, y, parent=parent)
    baby.mass = cfg.baby_mass

    parent.mass = max(cfg.parent_mass_floor, parent.mass * cfg.parent_mass_keep)
    parent.reward(world.config.fitness.birth)
    parent.births_given += 1
    parent.last_reproduction_tick = world.tick
    parent.children_ids.append(baby.id)

    world.add_agent(baby)
    logger.debug(f"[Reproduction] Agent {parent.id} gave birth to {baby.id} at tick {world.tick}")
    return BirthResult(True, baby)
