from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import ConfigurationError

INPUT_SIZE = 14
OUTPUT_SIZE = 3


@dataclass
class WorldConfig:
    width: float = 4000.0
    height: float = 2000.0
    max_population: int = 200
    max_food: int = 1900
    initial_food: int = 950
    food_spawn_rate: int = 10
    food_max_age: int = 5000
    food_degradation: float = 0.998
    cluster_interval: int = 200  # tick
    grid_size: float = 100.0
    vision_range: float = 210.0
    vision_update_interval: int = 2  # tick
    use_biomes: bool = True
    use_obstacles: bool = True
    max_obstacles: int = 40
    engineered_features: bool = True


@dataclass
class AgentConfig:
    initial_mass: float = 30.0
    initial_energy: float = 100.0
    max_energy: float = 150.0
    max_age: int = 8000  # tick
    death_mass: float = 7.0
    acceleration_scale: float = 0.45
    rotation_scale: float = 0.2
    reproduce_threshold: float = 0.7
    friction: float = 0.95
    base_speed: float = 5.0


@dataclass
class MetabolismConfig:
    base_energy_cost: float = 0.02
    move_energy_cost: float = 0.01
    energy_per_food_mass: float = 4.0
    starvation_rate: float = 1.2
    starvation_interval: int = 150  # tick
    min_movement: float = 0.5
    idle_penalty_start: int = 20  # tick
    idle_mass_interval: int = 10  # tick
    idle_mass_floor: float = 20.0


@dataclass
class ReproductionConfig:
    min_mass: float = 20.0
    cooldown: int = 200  # tick
    food_threshold: int = 30
    min_age: int = 200  # tick
    baby_mass: float = 25.0
    parent_mass_keep: float = 0.7
    parent_mass_floor: float = 30.0
    spawn_distance_min: float = 60.0
    spawn_distance_max: float = 100.0


@dataclass
class FitnessConfig:
    food: float = 2.0
    kill: float = 35.0
    killed: float = -15.0
    birth: float = 50.0
    failed_birth: float = -1.0
    idle: float = -0.2
    movement_factor: float = 0.23
    starvation: float = -2.0  # per starvation interval
    starvation_death: float = -30.0
    obstacle: float = -40.0
    # replace event totals with the composite lifetime score after every tick
    lifetime_score: bool = False


@dataclass
class NeatConfig:
    mutation_rate: float = 0.8
    elitism: float = 0.3
    mutation_size: float = 0.4
    add_node_rate: float = 0.4
    add_connection_rate: float = 0.25
    compatibility_threshold: float = 3.0
    activation_mutation_rate: float = 0.05
    stagnation_limit: int = 15


@dataclass
class TrainingConfig:
    max_generations: Optional[int] = 200
    ticks_per_generation: int = 4000
    elite_count: int = 15
    target_fitness: Optional[float] = None
    population_size: int = 70
    save_interval: int = 10
    seed: Optional[int] = None
    checkpoint_dir: Optional[str] = None
    neat: NeatConfig = field(default_factory=NeatConfig)
    world: WorldConfig = field(default_factory=WorldConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    metabolism: MetabolismConfig = field(default_factory=MetabolismConfig)
    reproduction: ReproductionConfig = field(default_factory=ReproductionConfig)
    fitness: FitnessConfig = field(default_factory=FitnessConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingConfig":
        config = cls()
        config.update_from_mapping(data)
        return config

    @classmethod
    def from_preset(cls, name: str) -> "TrainingConfig":
        try:
            preset = TRAINING_PRESETS[name]
        except KeyError as exc:
            raise ConfigurationError(
                f"unknown preset {name!r}; choose from {', '.join(TRAINING_PRESETS)}"
            ) from exc
        return cls.from_dict(preset)

    @classmethod
    def load(cls, path: Path) -> "TrainingConfig":
        return cls.from_dict(read_mapping(path))

    def update_from_mapping(self, data: Dict[str, Any]) -> None:
        """Merge settings from a nested mapping into the config.

        Unknown keys are ignored. Known keys are converted to the field's
        declared type; a value that does not fit raises ConfigurationError.
        """
        sections = dict(self.iter_sections())
        top_level = {f.name: f.type for f in fields(self)}
        for key, value in data.items():
            if key in sections:
                if not isinstance(value, dict):
                    raise ConfigurationError(f"{key} must be a mapping, got {type(value).__name__}")
                section = sections[key]
                declared = {f.name: f.type for f in fields(section)}
                for name, item in value.items():
                    if name in declared:
                        setattr(section, name, _coerce(f"{key}.{name}", item, declared[name]))
            elif key in top_level:
                setattr(self, key, _coerce(key, value, top_level[key]))

    def iter_sections(self) -> Iterable[Tuple[str, Any]]:
        yield "neat", self.neat
        yield "world", self.world
        yield "agent", self.agent
        yield "metabolism", self.metabolism
        yield "reproduction", self.reproduction
        yield "fitness", self.fitness

    def copy(self) -> "TrainingConfig":
        return TrainingConfig.from_dict(self.to_dict())

    def validate(self) -> None:
        if self.population_size <= 0:
            raise ConfigurationError(f"population_size must be positive, got {self.population_size}")
        if self.ticks_per_generation <= 0:
            raise ConfigurationError(
                f"ticks_per_generation must be positive, got {self.ticks_per_generation}"
            )
        if self.max_generations is not None and self.max_generations <= 0:
            raise ConfigurationError(f"max_generations must be positive, got {self.max_generations}")
        if self.elite_count < 0:
            raise ConfigurationError(f"elite_count must not be negative, got {self.elite_count}")
        if self.save_interval <= 0:
            raise ConfigurationError(f"save_interval must be positive, got {self.save_interval}")
        if not 0.0 <= self.neat.elitism <= 1.0:
            raise ConfigurationError(f"neat.elitism must lie in [0, 1], got {self.neat.elitism}")
        for f in fields(NeatConfig):
            value = getattr(self.neat, f.name)
            if value < 0:
                raise ConfigurationError(f"neat.{f.name} must not be negative, got {value}")
        if self.world.width <= 0 or self.world.height <= 0:
            raise ConfigurationError("world dimensions must be positive")
        if self.world.vision_update_interval <= 0 or self.metabolism.starvation_interval <= 0:
            raise ConfigurationError("tick intervals must be positive")


# max_generations=None runs until stop() or target fitness.
TRAINING_PRESETS: Dict[str, Dict[str, Any]] = {
    "quick": {"max_generations": 50, "ticks_per_generation": 2000, "elite_count": 10, "target_fitness": 200.0},
    "standard": {"max_generations": 200, "ticks_per_generation": 4000, "elite_count": 15, "target_fitness": 400.0},
    "extended": {"max_generations": 1000, "ticks_per_generation": 5000, "elite_count": 20, "target_fitness": 600.0},
    "overnight": {"max_generations": 10000, "ticks_per_generation": 6000, "elite_count": 25, "target_fitness": 1000.0},
    "indefinite": {"max_generations": None, "ticks_per_generation": 5000, "elite_count": 20, "target_fitness": None},
}


def read_mapping(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"cannot read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must contain a JSON object")
    return data


def _coerce(name: str, value: Any, declared: str) -> Any:
    """Convert a mapping value to a field's declared type name."""
    optional = declared.startswith("Optional[")
    if optional:
        if value is None:
            return None
        declared = declared[len("Optional["):-1]
    if declared == "bool":
        if isinstance(value, bool):
            return value
    elif declared == "int":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
    elif declared == "float":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif declared == "str":
        if isinstance(value, str):
            return value
    raise ConfigurationError(f"{name} must be {declared}, got {value!r}")


DEFAULT_CONFIG = TrainingConfig()


def with_overrides(config: TrainingConfig, **overrides: Any) -> TrainingConfig:
    """Return a copy of ``config`` with top-level fields replaced, skipping ``None`` values."""
    values = {k: v for k, v in overrides.items() if v is not None}
    return replace(config.copy(), **values)
