# SPDX-License-Identifier: MIT
"""
Arena environment: biomes, food supply, obstacles and spatial lookups.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

import numpy as np

from neuroarena.core.config import WorldConfig

T = TypeVar("T")

BIOME_SPAWN_P = 0.7
BORDER_PADDING = 50.0
BORDER_OBSTACLES = 12
CLUSTER_SIZE = 15
CLUSTER_SPREAD = 60.0
MIN_FOOD_MASS = 0.5


@dataclass
class Food:
    x: float
    y: float
    mass: float
    age: int = 0


@dataclass
class Obstacle:
    x: float
    y: float
    radius: float


@dataclass
class Biome:
    name: str
    x: float
    y: float
    width: float
    height: float
    food_density: float
    food_quality: float
    danger_level: float

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


def create_biomes(width: float, height: float) -> List[Biome]:
    biomes = [Biome("center_rich", width * 0.35, height * 0.35, width * 0.3, height * 0.3, 1.8, 1.2, 0.2)]
    corners = [(0.0, 0.0), (width * 0.7, 0.0), (0.0, height * 0.7), (width * 0.7, height * 0.7)]
    for i, (cx, cy) in enumerate(corners):
        biomes.append(Biome(f"corner_sparse_{i}", cx, cy, width * 0.3, height * 0.3, 0.4, 0.8, 0.5))
    edges = [
        (width * 0.4, 0.0, width * 0.2, height * 0.15),
        (width * 0.4, height * 0.85, width * 0.2, height * 0.15),
        (0.0, height * 0.4, width * 0.15, height * 0.2),
        (width * 0.85, height * 0.4, width * 0.15, height * 0.2),
    ]
    for i, (ex, ey, ew, eh) in enumerate(edges):
        biomes.append(Biome(f"edge_danger_{i}", ex, ey, ew, eh, 1.0, 1.5, 0.8))
    return biomes


def population_pressure(
    agent_count: int, food_count: int, target_agents: int = 100, food_per_agent: float = 50.0
) -> float:
    """0 when food is plentiful and the arena is sparse, 1 under heavy competition."""
    agent_ratio = agent_count / target_agents
    food_ratio = food_count / max(agent_count * food_per_agent, 1.0)
    return float(np.clip(agent_ratio * 0.7 + (1.0 - food_ratio) * 0.3, 0.0, 1.0))


class SpatialGrid(Generic[T]):
    """Uniform bucket grid over anything exposing ``x`` and ``y``."""

    def __init__(self, cell: float) -> None:
        self.cell = float(cell)
        self._cells: Dict[Tuple[int, int], List[T]] = {}

    def _key(self, x: float, y: float) -> Tuple[int, int]:
        return int(math.floor(x / self.cell)), int(math.floor(y / self.cell))

    def rebuild(self, items: Iterable[T]) -> None:
        self._cells.clear()
        for item in items:
            self._cells.setdefault(self._key(item.x, item.y), []).append(item)

    def query(self, x: float, y: float, radius: float) -> List[T]:
        cx, cy = self._key(x, y)
        reach = int(math.ceil(radius / self.cell))
        radius_sq = radius * radius
        found: List[T] = []
        for gx in range(cx - reach, cx + reach + 1):
            for gy in range(cy - reach, cy + reach + 1):
                for item in self._cells.get((gx, gy), ()):
                    dx = item.x - x
                    dy = item.y - y
                    if dx * dx + dy * dy <= radius_sq:
                        found.append(item)
        return found


class Environment:
    def __init__(self, config: WorldConfig, rng: np.random.Generator) -> None:
        self.config = config
        self.rng = rng
        self.tick = 0
        self.pressure = 0.0
        self.food: List[Food] = []
        self.biomes: List[Biome] = create_biomes(config.width, config.height) if config.use_biomes else []
        self.obstacles: List[Obstacle] = self._spawn_obstacles() if config.use_obstacles else []
        self.food_grid: SpatialGrid[Food] = SpatialGrid(config.grid_size)
        self.spawn_food(config.initial_food)
        self.food_grid.rebuild(self.food)

    # ---------- 生成 ----------
    def _clamp(self, x: float, y: float) -> Tuple[float, float]:
        return (
            float(np.clip(x, 0.0, self.config.width)),
            float(np.clip(y, 0.0, self.config.height)),
        )

    def _pick_biome(self) -> Optional[Biome]:
        if not self.biomes or self.rng.random() >= BIOME_SPAWN_P:
            return None
        weights = np.array([b.food_density for b in self.biomes], dtype=np.float64)
        return self.biomes[int(self.rng.choice(len(self.biomes), p=weights / weights.sum()))]

    def spawn_food(self, count: int, pressure: float = 0.0) -> int:
        cfg = self.config
        count = int(count * (1.0 + pressure * 0.5))
        spawned = 0
        while spawned < count and len(self.food) < cfg.max_food:
            biome = self._pick_biome()
            if biome is not None:
                x = biome.x + self.rng.random() * biome.width
                y = biome.y + self.rng.random() * biome.height
                mass = (2.0 + self.rng.random() * 2.0) * biome.food_quality
            else:
                x = self.rng.random() * cfg.width
                y = self.rng.random() * cfg.height
                mass = 2.0 + self.rng.random() * 2.0
            self.food.append(Food(float(x), float(y), float(mass)))
            spawned += 1
        return spawned

    def spawn_cluster(self, x: float, y: float, count: int = CLUSTER_SIZE, spread: float = CLUSTER_SPREAD) -> None:
        for _ in range(count):
            angle = self.rng.random() * math.tau
            dist = self.rng.random() * spread
            fx, fy = self._clamp(x + math.cos(angle) * dist, y + math.sin(angle) * dist)
            self.food.append(Food(fx, fy, float(2.0 + self.rng.random() * 2.0)))

    def drop_pellets(self, x: float, y: float, count: int, mass: float, spread: Tuple[float, float]) -> None:
        lo, hi = spread
        for p in range(count):
            angle = math.tau * p / count
            dist = lo + self.rng.random() * (hi - lo)
            fx, fy = self._clamp(x + math.cos(angle) * dist, y + math.sin(angle) * dist)
            self.food.append(Food(fx, fy, mass))

    def _spawn_obstacles(self) -> List[Obstacle]:
        cfg = self.config
        obstacles: List[Obstacle] = []
        for _ in range(BORDER_OBSTACLES):
            side = int(self.rng.integers(4))
            if side == 0:
                x, y = self.rng.random() * cfg.width, BORDER_PADDING
            elif side == 1:
                x, y = cfg.width - BORDER_PADDING, self.rng.random() * cfg.height
            elif side == 2:
                x, y = self.rng.random() * cfg.width, cfg.height - BORDER_PADDING
            else:
                x, y = BORDER_PADDING, self.rng.random() * cfg.height
            obstacles.append(Obstacle(float(x), float(y), float(20.0 + self.rng.random() * 30.0)))
        for biome in self.biomes:
            for _ in range(int(biome.danger_level * 5)):
                if len(obstacles) >= cfg.max_obstacles:
                    break
                obstacles.append(
                    Obstacle(
                        float(biome.x + self.rng.random() * biome.width),
                        float(biome.y + self.rng.random() * biome.height),
                        float(15.0 + self.rng.random() * 40.0),
                    )
                )
        return obstacles[: cfg.max_obstacles]

    # ---------- 更新 ----------
    def age_food(self) -> None:
        cfg = self.config
        survivors = []
        for f in self.food:
            f.age += 1
            if f.age > cfg.food_max_age * 0.5:
                f.mass *= cfg.food_degradation
            if f.age <= cfg.food_max_age and f.mass > MIN_FOOD_MASS:
                survivors.append(f)
        self.food = survivors

    def update(self, agent_count: int) -> None:
        cfg = self.config
        self.tick += 1
        self.pressure = population_pressure(agent_count, len(self.food))
        self.age_food()
        self.spawn_food(cfg.food_spawn_rate, self.pressure)
        if cfg.cluster_interval > 0 and self.tick % cfg.cluster_interval == 0 and len(self.food) < cfg.max_food * 0.8:
            self.spawn_cluster(self.rng.random() * cfg.width, self.rng.random() * cfg.height)
        self.food_grid.rebuild(self.food)

    def remove_food(self, eaten: Iterable[Food]) -> None:
        gone = {id(f) for f in eaten}
        if gone:
            self.food = [f for f in self.food if id(f) not in gone]

    # ---------- 問い合わせ ----------
    def nearby_food(self, x: float, y: float, radius: float) -> List[Food]:
        return self.food_grid.query(x, y, radius)

    def touching_obstacle(self, x: float, y: float, radius: float) -> Optional[Obstacle]:
        for obs in self.obstacles:
            if math.hypot(obs.x - x, obs.y - y) < radius + obs.radius:
                return obs
        return None

    def free_position(self, clearance: float, attempts: int = 20) -> Tuple[float, float]:
        """Random point that does not overlap an obstacle."""
        x = y = 0.0
        for _ in range(attempts):
            x = float(self.rng.random() * self.config.width)
            y = float(self.rng.random() * self.config.height)
            if self.touching_obstacle(x, y, clearance) is None:
                break
        return x, y
