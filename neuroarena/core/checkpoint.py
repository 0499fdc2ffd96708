# SPDX-License-Identifier: MIT
"""
Progress snapshots, checkpoints and elite export documents.

All documents are plain JSON with camelCase keys so they can be consumed by a
separate live (rendered) simulation.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from neuroarena.core.errors import SerializationError
from neuroarena.neat.genome import Genome

CHECKPOINT_VERSION = "1.0"

_PROGRESS_KEYS = {
    "generation": "generation",
    "tick": "tick",
    "population": "population",
    "best_fitness": "bestFitness",
    "avg_fitness": "avgFitness",
    "avg_nodes": "avgNodes",
    "avg_connections": "avgConnections",
    "max_nodes": "maxNodes",
    "max_connections": "maxConnections",
    "best_fitness_ever": "bestFitnessEver",
    "total_births": "totalBirths",
    "total_deaths": "totalDeaths",
    "ticks_per_second": "ticksPerSecond",
    "elapsed_seconds": "elapsedSeconds",
    "complexity_score": "complexityScore",
    "species_count": "speciesCount",
}


def _finite(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass
class TrainingProgress:
    generation: int = 0
    tick: int = 0
    population: int = 0
    best_fitness: float = 0.0
    avg_fitness: float = 0.0
    avg_nodes: float = 0.0
    avg_connections: float = 0.0
    max_nodes: int = 0
    max_connections: int = 0
    elite_genomes: List[Genome] = field(default_factory=list)
    best_fitness_ever: float = 0.0
    total_births: int = 0
    total_deaths: int = 0
    ticks_per_second: float = 0.0
    elapsed_seconds: float = 0.0
    complexity_score: float = 0.0
    species_count: int = 0

    def to_dict(self, include_elites: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            key: _finite(getattr(self, attr)) for attr, key in _PROGRESS_KEYS.items()
        }
        data["eliteGenomes"] = [g.to_dict() for g in self.elite_genomes] if include_elites else []
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingProgress":
        if not isinstance(data, dict):
            raise SerializationError("progress must be an object")
        progress = cls()
        try:
            for attr, key in _PROGRESS_KEYS.items():
                value = data.get(key)
                if value is None:
                    continue
                current = getattr(progress, attr)
                setattr(progress, attr, type(current)(value))
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"malformed progress: {exc}") from exc
        progress.elite_genomes = [Genome.from_dict(g) for g in data.get("eliteGenomes") or []]
        return progress


@dataclass
class TrainingCheckpoint:
    config: Dict[str, Any]
    progress: TrainingProgress
    elite_genomes: List[Genome]
    version: str = CHECKPOINT_VERSION
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "config": self.config,
            # elites are stored once at the top level
            "progress": self.progress.to_dict(include_elites=False),
            "eliteGenomes": [g.to_dict() for g in self.elite_genomes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainingCheckpoint":
        if not isinstance(data, dict):
            raise SerializationError("checkpoint must be a JSON object")
        missing = [k for k in ("version", "config", "progress", "eliteGenomes") if k not in data]
        if missing:
            raise SerializationError(f"checkpoint is missing {', '.join(missing)}")
        if data["version"] != CHECKPOINT_VERSION:
            raise SerializationError(
                f"unsupported checkpoint version {data['version']!r} (expected {CHECKPOINT_VERSION})"
            )
        if not isinstance(data["config"], dict):
            raise SerializationError("checkpoint config must be an object")
        if not isinstance(data["eliteGenomes"], list):
            raise SerializationError("checkpoint eliteGenomes must be a list")

        elites = [Genome.from_dict(g) for g in data["eliteGenomes"]]
        shapes = {(g.input_size, g.output_size) for g in elites}
        if len(shapes) > 1:
            raise SerializationError(f"elite genomes disagree on input/output sizes: {sorted(shapes)}")
        progress = TrainingProgress.from_dict(data["progress"])
        progress.elite_genomes = list(elites)
        return cls(
            config=data["config"],
            progress=progress,
            elite_genomes=elites,
            version=data["version"],
            timestamp=str(data.get("timestamp", "")),
        )

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, allow_nan=False))
        logger.info(f"[Checkpoint] Saved generation {self.progress.generation} to {path}")
        return path

    @classmethod
    def load(cls, path: Path) -> "TrainingCheckpoint":
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except OSError as exc:
            raise SerializationError(f"cannot read checkpoint {path}: {exc}") from exc
        except ValueError as exc:
            raise SerializationError(f"checkpoint {path} is not valid JSON: {exc}") from exc
        checkpoint = cls.from_dict(data)
        logger.info(
            f"[Checkpoint] Loaded {path} (generation {checkpoint.progress.generation}, "
            f"{len(checkpoint.elite_genomes)} elites)"
        )
        return checkpoint


def export_genomes(genomes: List[Genome], path: Path) -> Path:
    """Write genomes as a JSON list of serialized genomes."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps([g.to_dict() for g in genomes], indent=2, allow_nan=False))
    logger.info(f"[Checkpoint] Exported {len(genomes)} genomes to {path}")
    return path


def import_genomes(path: Path) -> List[Genome]:
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as exc:
        raise SerializationError(f"cannot read genomes from {path}: {exc}") from exc
    if not isinstance(data, list):
        raise SerializationError(f"{path} must contain a JSON list of genomes")
    return [Genome.from_dict(g) for g in data]


def latest_checkpoint(directory: Path) -> Optional[Path]:
    directory = Path(directory)
    if not directory.is_dir():
        return None
    candidates = sorted(directory.glob("checkpoint_gen*.json"))
    return candidates[-1] if candidates else None
