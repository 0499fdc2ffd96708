# SPDX-License-Identifier: MIT
"""
Arena agent: a body in the world driven by exactly one genome.
"""

from __future__ import annotations

import math
from typing import List, NamedTuple, Optional, Sequence

from neuroarena.core.config import AgentConfig
from neuroarena.neat.genome import Genome


class Decision(NamedTuple):
    acceleration: float
    rotation: float
    reproduce: bool


class Agent:
    __slots__ = (
        "id", "x", "y", "vx", "vy", "heading", "mass", "energy", "age", "generation",
        "parent_id", "children_ids", "family_lineage", "kills", "food_eaten",
        "last_reproduction_tick", "births_given", "distance_traveled", "idle_ticks",
        "cached_vision", "vision_counter", "alive", "cause_of_death", "genome",
    )

    def __init__(
        self,
        agent_id: int,
        genome: Genome,
        x: float,
        y: float,
        *,
        mass: float = 30.0,
        energy: float = 100.0,
        heading: float = 0.0,
        generation: int = 0,
        parent_id: Optional[int] = None,
        family_lineage: Optional[int] = None,
        last_reproduction_tick: int = 0,
    ) -> None:
        self.id = agent_id
        self.genome = genome
        self.x = float(x)
        self.y = float(y)
        self.vx = 0.0
        self.vy = 0.0
        self.heading = float(heading)
        self.mass = float(mass)
        self.energy = float(energy)
        self.age = 0
        self.generation = generation
        self.parent_id = parent_id
        self.children_ids: List[int] = []
        self.family_lineage = agent_id if family_lineage is None else family_lineage
        self.kills = 0
        self.food_eaten = 0
        self.last_reproduction_tick = last_reproduction_tick
        self.births_given = 0
        self.distance_traveled = 0.0
        self.idle_ticks = 0
        self.cached_vision: Optional[List[float]] = None
        self.vision_counter = 0
        self.alive = True
        self.cause_of_death: Optional[str] = None

    @property
    def radius(self) -> float:
        return math.sqrt(max(self.mass, 0.0)) * 2.5

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    @property
    def fitness(self) -> float:
        return self.genome.fitness

    def reward(self, amount: float) -> None:
        self.genome.fitness += amount

    def max_speed(self, base_speed: float) -> float:
        return base_speed / math.sqrt(max(self.mass, 1e-6) / 30.0)

    def decide(self, inputs: Sequence[float], config: AgentConfig) -> Decision:
        out = self.genome.activate(inputs)
        return Decision(
            acceleration=math.tanh(out[0]) * config.acceleration_scale,
            rotation=math.tanh(out[1]) * config.rotation_scale,
            reproduce=math.tanh(out[2]) > config.reproduce_threshold,
        )

    def move(self, decision: Decision, config: AgentConfig, width: float, height: float) -> float:
        """Integrate one tick of motion and bounce off the walls; returns distance moved."""
        self.heading += decision.rotation
        self.vx += math.cos(self.heading) * decision.acceleration
        self.vy += math.sin(self.heading) * decision.acceleration
        self.vx *= config.friction
        self.vy *= config.friction

        speed = self.speed
        limit = self.max_speed(config.base_speed)
        if speed > limit:
            self.vx = self.vx / speed * limit
            self.vy = self.vy / speed * limit

        old_x, old_y = self.x, self.y
        self.x += self.vx
        self.y += self.vy
        if self.x < 0.0 or self.x > width:
            self.x = min(max(self.x, 0.0), width)
            self.vx = -self.vx
        if self.y < 0.0 or self.y > height:
            self.y = min(max(self.y, 0.0), height)
            self.vy = -self.vy
        if self.vx or self.vy:
            self.heading = math.atan2(self.vy, self.vx)

        moved = math.hypot(self.x - old_x, self.y - old_y)
        self.distance_traveled += moved
        return moved

    def kill(self, cause: str) -> None:
        self.alive = False
        self.cause_of_death = cause

    def is_related(self, other: "Agent") -> bool:
        return self.family_lineage == other.family_lineage

    def __repr__(self) -> str:
        return (
            f"Agent(id={self.id}, mass={self.mass:.1f}, energy={self.energy:.1f}, "
            f"age={self.age}, fitness={self.genome.fitness:.2f})"
        )
