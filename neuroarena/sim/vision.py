# SPDX-License-Identifier: MIT
"""
Gradient vision and the full sensor vector fed to each genome.

Layout of the 14 inputs:
    0-7   attraction dx/dy/strength, danger dx/dy/strength, mass, reproduction readiness
          (or the engineered equivalents, see ``features.FeaturePreprocessor``)
    8-11  wall proximity north/east/south/west
    12    idleness
    13    speed relative to the agent's mass-dependent limit
"""

from __future__ import annotations

import math
from typing import List, Optional, Protocol, Sequence, Tuple

from neuroarena.core.config import TrainingConfig
from neuroarena.sim.agent import Agent
from neuroarena.sim.environment import Food, Obstacle
from neuroarena.sim.features import FeaturePreprocessor

THREAT_RATIO = 1.15
PREY_RATIO = 0.87
WALL_RANGE = 200.0
IDLE_SATURATION = 100.0
GRADIENT_SIZE = 8


class WorldView(Protocol):
    """Spatial queries an agent may make while sensing."""

    tick: int
    width: float
    height: float
    obstacles: Sequence[Obstacle]

    def nearby_food(self, x: float, y: float, radius: float) -> List[Food]:
        ...

    def nearby_agents(self, x: float, y: float, radius: float) -> List[Agent]:
        ...


def _unit(x: float, y: float) -> Tuple[float, float, float]:
    mag = math.hypot(x, y)
    if mag < 1e-9:
        return 0.0, 0.0, 0.0
    return x / mag, y / mag, math.tanh(mag)


def gradient_vision(agent: Agent, world: WorldView, config: TrainingConfig) -> List[float]:
    """Eight raw values: attraction vector, danger vector, mass and reproduction readiness."""
    reach = config.world.vision_range
    ax = ay = dx = dy = 0.0

    for f in world.nearby_food(agent.x, agent.y, reach):
        ox, oy = f.x - agent.x, f.y - agent.y
        dist = math.hypot(ox, oy)
        if dist < 1e-6:
            continue
        pull = (1.0 - dist / reach) ** 2 * (f.mass / 4.0)
        ax += ox / dist * pull
        ay += oy / dist * pull

    for other in world.nearby_agents(agent.x, agent.y, reach):
        if other is agent or not other.alive or agent.is_related(other):
            continue
        ox, oy = other.x - agent.x, other.y - agent.y
        dist = math.hypot(ox, oy)
        if dist < 1e-6:
            continue
        proximity = (1.0 - dist / reach) ** 2
        ratio = other.mass / max(agent.mass, 1e-6)
        if ratio > THREAT_RATIO:
            push = proximity * (0.5 + min((ratio - 1.0) * 2.0, 1.0) * 0.5)
            dx += ox / dist * push
            dy += oy / dist * push
        elif ratio < PREY_RATIO:
            pull = proximity * (0.5 + min((1.0 / ratio - 1.0) * 0.5, 1.0) * 0.5)
            ax += ox / dist * pull
            ay += oy / dist * pull

    for obs in world.obstacles:
        ox, oy = obs.x - agent.x, obs.y - agent.y
        dist = math.hypot(ox, oy)
        gap = max(0.0, dist - obs.radius)
        if gap > reach or dist < 1e-6:
            continue
        push = (1.0 - gap / reach) ** 1.5
        dx += ox / dist * push
        dy += oy / dist * push

    attr = _unit(ax, ay)
    danger = _unit(dx, dy)
    mass_norm = min(math.log10(agent.mass + 1.0) / 2.0, 1.0)
    cooldown = max(config.reproduction.cooldown, 1)
    repro_ready = min(max(world.tick - agent.last_reproduction_tick, 0) / cooldown, 1.0)
    return [*attr, *danger, mass_norm, repro_ready]


def wall_proximity(agent: Agent, width: float, height: float) -> List[float]:
    return [
        max(0.0, 1.0 - agent.y / WALL_RANGE),
        max(0.0, 1.0 - (width - agent.x) / WALL_RANGE),
        max(0.0, 1.0 - (height - agent.y) / WALL_RANGE),
        max(0.0, 1.0 - agent.x / WALL_RANGE),
    ]


def sense(
    agent: Agent,
    world: WorldView,
    config: TrainingConfig,
    preprocessor: Optional[FeaturePreprocessor] = None,
) -> List[float]:
    gradient = gradient_vision(agent, world, config)
    if preprocessor is not None:
        gradient = preprocessor.preprocess(agent, gradient)
    idleness = min(agent.idle_ticks / IDLE_SATURATION, 1.0)
    speed = min(agent.speed / max(agent.max_speed(config.agent.base_speed), 1e-6), 1.0)
    return [*gradient, *wall_proximity(agent, world.width, world.height), idleness, speed]
