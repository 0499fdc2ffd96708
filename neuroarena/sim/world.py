# SPDX-License-Identifier: MIT
"""
Arena world: owns the environment and agents and advances them one tick at a time.

Each tick runs in two phases. Every living agent first senses and decides
against the same world state; only then are decisions applied, followed by
collisions and removal of the dead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np
from loguru import logger

from neuroarena.core.config import TrainingConfig
from neuroarena.neat.genome import Genome
from neuroarena.sim.agent import Agent, Decision
from neuroarena.sim.environment import Environment, Food, Obstacle, SpatialGrid
from neuroarena.sim.features import FeaturePreprocessor
from neuroarena.sim.fitness import score_population
from neuroarena.sim.reproduction import POPULATION_CAP, create_agent, give_birth
from neuroarena.sim.vision import sense

PREDATION_RATIO = 1.15
PREDATION_REACH = 0.8
PREDATION_TRANSFER = 0.7
OBSTACLE_PELLET_MASS = 2.5
PREY_PELLET_MASS = 2.0
IDLE_MASS_STEP = 0.1


@dataclass
class WorldStats:
    tick: int = 0
    population: int = 0
    food: int = 0
    births: int = 0
    deaths: int = 0
    mean_mass: float = 0.0
    mean_energy: float = 0.0


class World:
    def __init__(
        self,
        config: TrainingConfig,
        genomes: Sequence[Genome] = (),
        mutate: Optional[Callable[[Genome], None]] = None,
        rng: Optional[np.random.Generator] = None,
        generation: int = 0,
    ) -> None:
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()
        self.generation = generation
        self.tick = 0
        self.births = 0
        self.deaths = 0
        self._mutate = mutate
        self._next_id = 0
        self._pending: List[Agent] = []
        self.environment = Environment(config.world, self.rng)
        self.preprocessor = FeaturePreprocessor() if config.world.engineered_features else None
        self._agent_grid: SpatialGrid[Agent] = SpatialGrid(config.world.grid_size)
        self.agents: List[Agent] = [create_agent(self, g) for g in genomes]
        self._agent_grid.rebuild(self.agents)

    # ---------- WorldView ----------
    @property
    def width(self) -> float:
        return self.config.world.width

    @property
    def height(self) -> float:
        return self.config.world.height

    @property
    def obstacles(self) -> List[Obstacle]:
        return self.environment.obstacles

    @property
    def food(self) -> List[Food]:
        return self.environment.food

    @property
    def population(self) -> int:
        return len(self.agents) + len(self._pending)

    def nearby_food(self, x: float, y: float, radius: float) -> List[Food]:
        return self.environment.nearby_food(x, y, radius)

    def nearby_agents(self, x: float, y: float, radius: float) -> List[Agent]:
        return self._agent_grid.query(x, y, radius)

    # ---------- 個体管理 ----------
    def next_agent_id(self) -> int:
        agent_id = self._next_id
        self._next_id += 1
        return agent_id

    def add_agent(self, agent: Agent) -> None:
        self._pending.append(agent)

    def mutate(self, genome: Genome) -> None:
        if self._mutate is not None:
            self._mutate(genome)

    def extinct(self) -> bool:
        return not self.agents and not self._pending

    # ---------- 更新 ----------
    def step(self) -> int:
        """Advance one tick; returns the living population."""
        self.tick += 1
        self.environment.update(len(self.agents))
        self._agent_grid.rebuild(self.agents)

        decisions = [(agent, self._think(agent)) for agent in self.agents]
        for agent, decision in decisions:
            if agent.alive:
                self._act(agent, decision)

        if self._pending:
            self.births += len(self._pending)
            self.agents.extend(self._pending)
            self._pending = []

        self._collide()
        self._reap()
        if self.config.fitness.lifetime_score:
            score_population(self.agents, self.config.agent.initial_mass)
        return len(self.agents)

    def _think(self, agent: Agent) -> Decision:
        agent.age += 1
        agent.vision_counter += 1
        if agent.cached_vision is None or agent.vision_counter >= self.config.world.vision_update_interval:
            agent.cached_vision = sense(agent, self, self.config, self.preprocessor)
            agent.vision_counter = 0
        return agent.decide(agent.cached_vision, self.config.agent)

    def _act(self, agent: Agent, decision: Decision) -> None:
        cfg = self.config
        meta = cfg.metabolism

        if decision.reproduce:
            result = give_birth(agent, self)
            if not result.success and result.reason != POPULATION_CAP:
                agent.reward(cfg.fitness.failed_birth)

        moved = agent.move(decision, cfg.agent, self.width, self.height)
        agent.energy -= meta.base_energy_cost + meta.move_energy_cost * agent.speed

        if moved < meta.min_movement:
            agent.idle_ticks += 1
            if agent.idle_ticks > meta.idle_penalty_start:
                agent.reward(cfg.fitness.idle)
                if self.tick % meta.idle_mass_interval == 0 and agent.mass > meta.idle_mass_floor:
                    loss = (agent.idle_ticks - meta.idle_penalty_start) * IDLE_MASS_STEP
                    agent.mass = max(meta.idle_mass_floor, agent.mass - loss)
        else:
            agent.idle_ticks = 0
            agent.reward(moved * cfg.fitness.movement_factor)

        if self.tick % meta.starvation_interval == 0:
            agent.mass -= meta.starvation_rate
            agent.reward(cfg.fitness.starvation)
            if agent.mass <= cfg.agent.death_mass:
                agent.reward(cfg.fitness.starvation_death)
                agent.kill("starvation")
                return

        if agent.energy <= 0.0:
            agent.kill("exhaustion")
        elif agent.age > cfg.agent.max_age:
            agent.kill("old_age")

    def _collide(self) -> None:
        cfg = self.config
        env = self.environment

        for agent in self.agents:
            if not agent.alive:
                continue
            if env.touching_obstacle(agent.x, agent.y, agent.radius) is not None:
                env.drop_pellets(agent.x, agent.y, int(agent.mass / 3), OBSTACLE_PELLET_MASS, (15.0, 40.0))
                agent.reward(cfg.fitness.obstacle)
                agent.kill("obstacle")

        eaten = set()
        eaten_food: List[Food] = []
        for agent in self.agents:
            if not agent.alive:
                continue
            reach = agent.radius
            for f in env.nearby_food(agent.x, agent.y, reach):
                if id(f) in eaten or math.hypot(f.x - agent.x, f.y - agent.y) >= reach:
                    continue
                eaten.add(id(f))
                eaten_food.append(f)
                agent.mass += f.mass
                agent.energy = min(cfg.agent.max_energy, agent.energy + f.mass * cfg.metabolism.energy_per_food_mass)
                agent.food_eaten += 1
                agent.reward(cfg.fitness.food)
        env.remove_food(eaten_food)

        self._agent_grid.rebuild(a for a in self.agents if a.alive)
        for agent in self.agents:
            if not agent.alive:
                continue
            reach = agent.radius * PREDATION_REACH
            for other in self._agent_grid.query(agent.x, agent.y, reach):
                if other is agent or not other.alive or agent.is_related(other):
                    continue
                if agent.mass <= other.mass * PREDATION_RATIO:
                    continue
                if math.hypot(other.x - agent.x, other.y - agent.y) >= reach:
                    continue
                agent.mass += other.mass * PREDATION_TRANSFER
                agent.kills += 1
                agent.reward(cfg.fitness.kill)
                env.drop_pellets(other.x, other.y, int(other.mass / 6), PREY_PELLET_MASS, (10.0, 25.0))
                other.reward(cfg.fitness.killed)
                other.kill("predation")

    def _reap(self) -> None:
        death_mass = self.config.agent.death_mass
        survivors = []
        for agent in self.agents:
            if agent.alive and agent.mass <= death_mass:
                agent.kill("starvation")
            if agent.alive:
                survivors.append(agent)
        dead = len(self.agents) - len(survivors)
        if dead:
            self.deaths += dead
            logger.debug(f"[World] Tick {self.tick}: {dead} agents died, {len(survivors)} remain")
        self.agents = survivors

    # ---------- 統計 ----------
    def stats(self) -> WorldStats:
        n = len(self.agents)
        return WorldStats(
            tick=self.tick,
            population=n,
            food=len(self.environment.food),
            births=self.births,
            deaths=self.deaths,
            mean_mass=sum(a.mass for a in self.agents) / n if n else 0.0,
            mean_energy=sum(a.energy for a in self.agents) / n if n else 0.0,
        )
