# SPDX-License-Identifier: MIT
"""
Headless trainer: runs generations of arena simulation without rendering and
feeds the resulting fitness back into the evolution engine.

States::

    IDLE -> RUNNING -> {PAUSED <-> RUNNING} -> STOPPED | COMPLETED

The loop is synchronous. ``pause()`` and ``stop()`` are observed once per
tick, so they may be called from another thread or from a progress callback.
A paused trainer keeps its in-flight world and resumes on the same tick.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

import numpy as np
from loguru import logger

from neuroarena.core.checkpoint import TrainingCheckpoint, TrainingProgress, export_genomes
from neuroarena.core.config import INPUT_SIZE, OUTPUT_SIZE, TrainingConfig
from neuroarena.core.errors import ConfigurationError, SerializationError, TrainerStateError
from neuroarena.neat.genome import Genome
from neuroarena.neat.population import Neat
from neuroarena.sim.fitness import complexity_stats, fitness_stats, top_genomes
from neuroarena.sim.world import World

ProgressCallback = Callable[[TrainingProgress], None]
CheckpointCallback = Callable[[TrainingCheckpoint], None]


class TrainerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"


class HeadlessTrainer:
    def __init__(
        self,
        config: Optional[TrainingConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_checkpoint: Optional[CheckpointCallback] = None,
        on_complete: Optional[ProgressCallback] = None,
    ) -> None:
        self.config = config or TrainingConfig()
        self.on_progress = on_progress
        self.on_checkpoint = on_checkpoint
        self.on_complete = on_complete

        self._lock = threading.Lock()
        self._state = TrainerState.IDLE
        self._neat: Optional[Neat] = None
        self._world: Optional[World] = None
        self._world_rng: Optional[np.random.Generator] = None
        self._resume_pending = False
        self._tick = 0
        self._total_ticks = 0
        self._total_births = 0
        self._total_deaths = 0
        self._elapsed = 0.0
        self._segment_start: Optional[float] = None
        self._elites: List[Genome] = []
        self._progress = TrainingProgress()
        self.history: List[TrainingProgress] = []
        self.last_checkpoint_path: Optional[Path] = None

    # ---------- 状態 ----------
    @property
    def state(self) -> TrainerState:
        return self._state

    @property
    def neat(self) -> Optional[Neat]:
        return self._neat

    @property
    def world(self) -> Optional[World]:
        return self._world

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def progress(self) -> TrainingProgress:
        return self._progress

    @property
    def elites(self) -> List[Genome]:
        return list(self._elites)

    # ---------- コマンド ----------
    def start(self, config: Optional[TrainingConfig] = None, run: bool = True) -> TrainingProgress:
        """Begin a run; with ``run=False`` the caller drives it through ``advance()``."""
        with self._lock:
            if self._state in (TrainerState.RUNNING, TrainerState.PAUSED):
                raise TrainerStateError(f"cannot start while {self._state.value}")
            if config is not None:
                self.config = config
            self.config.validate()
            if self._resume_pending and self._neat is not None:
                self._neat.config = self.config.neat
                self._neat.resize(self.config.population_size)
                self._resume_pending = False
            else:
                self._create_engine()
            self._world = None
            self._tick = 0
            self._state = TrainerState.RUNNING
        limit = "unbounded" if self.config.max_generations is None else self.config.max_generations
        logger.info(
            f"[HeadlessTrainer] Start: {self.config.population_size} genomes, "
            f"{self.config.ticks_per_generation} ticks/generation, max generations {limit}"
        )
        if run:
            self._run(None)
        return self._progress

    def pause(self) -> bool:
        with self._lock:
            if self._state is not TrainerState.RUNNING:
                return False
            self._state = TrainerState.PAUSED
        logger.info(f"[HeadlessTrainer] Paused at generation {self._generation()} tick {self._tick}")
        return True

    def resume(self, run: bool = True) -> TrainingProgress:
        with self._lock:
            if self._state is not TrainerState.PAUSED:
                raise TrainerStateError(f"cannot resume while {self._state.value}")
            self._state = TrainerState.RUNNING
        logger.info(f"[HeadlessTrainer] Resumed at generation {self._generation()} tick {self._tick}")
        if run:
            self._run(None)
        return self._progress

    def stop(self) -> List[Genome]:
        """Stop the run; returns the last computed elite set."""
        with self._lock:
            if self._state in (TrainerState.RUNNING, TrainerState.PAUSED):
                self._state = TrainerState.STOPPED
                logger.info(f"[HeadlessTrainer] Stopped at generation {self._generation()}")
        return self.elites

    def advance(self, max_ticks: int) -> int:
        """Run at most ``max_ticks`` ticks; returns the number actually run."""
        return self._run(max_ticks)

    def load_checkpoint(self, checkpoint: Union[TrainingCheckpoint, Path, str, dict]) -> None:
        """Reseed the engine from a checkpoint's elites; the next ``start()`` continues from it."""
        if isinstance(checkpoint, (str, Path)):
            checkpoint = TrainingCheckpoint.load(Path(checkpoint))
        elif isinstance(checkpoint, dict):
            checkpoint = TrainingCheckpoint.from_dict(checkpoint)

        with self._lock:
            if self._state in (TrainerState.RUNNING, TrainerState.PAUSED):
                raise TrainerStateError(f"cannot load a checkpoint while {self._state.value}")
            for g in checkpoint.elite_genomes:
                if g.input_size != INPUT_SIZE or g.output_size != OUTPUT_SIZE:
                    raise SerializationError(
                        f"checkpoint genome is {g.input_size}x{g.output_size}, "
                        f"arena agents need {INPUT_SIZE}x{OUTPUT_SIZE}"
                    )
            try:
                config = TrainingConfig.from_dict(checkpoint.config)
                config.validate()
            except (ConfigurationError, TypeError, ValueError) as exc:
                raise SerializationError(f"checkpoint config is invalid: {exc}") from exc
            self.config = config
            self._create_engine()
            self._neat.seed_population(checkpoint.elite_genomes)
            self._neat.generation = checkpoint.progress.generation
            self._neat.best_fitness_ever = checkpoint.progress.best_fitness_ever
            self._total_births = checkpoint.progress.total_births
            self._total_deaths = checkpoint.progress.total_deaths
            self._elites = [g.clone() for g in checkpoint.elite_genomes]
            self._progress = checkpoint.progress
            self._resume_pending = True
            self._state = TrainerState.IDLE
        logger.info(
            f"[HeadlessTrainer] Loaded checkpoint at generation {checkpoint.progress.generation} "
            f"with {len(checkpoint.elite_genomes)} elites"
        )

    def save_checkpoint(self, path: Optional[Path] = None) -> TrainingCheckpoint:
        elites = self._elites
        if not elites and self._neat is not None:
            elites = [g.clone() for g in top_genomes(self._neat.population, self.config.elite_count)]
        checkpoint = TrainingCheckpoint(
            config=self.config.to_dict(),
            progress=self._progress,
            elite_genomes=elites,
        )
        if path is not None:
            self.last_checkpoint_path = checkpoint.save(Path(path))
        return checkpoint

    def export_elites(self, path: Path) -> Path:
        return export_genomes(self.elites, Path(path))

    # ---------- ループ ----------
    def _create_engine(self) -> None:
        seq = np.random.SeedSequence(self.config.seed)
        engine_seq, world_seq = seq.spawn(2)
        self._neat = Neat(
            INPUT_SIZE,
            OUTPUT_SIZE,
            self.config.population_size,
            self.config.neat,
            rng=np.random.default_rng(engine_seq),
        )
        self._world_rng = np.random.default_rng(world_seq)
        self._total_ticks = 0
        self._total_births = 0
        self._total_deaths = 0
        self._elapsed = 0.0
        self._segment_start = None
        self._elites = []
        self._progress = TrainingProgress()
        self.history = []

    def _generation(self) -> int:
        return self._neat.generation if self._neat is not None else 0

    def _run(self, max_ticks: Optional[int]) -> int:
        ran = 0
        self._segment_start = time.perf_counter()
        try:
            while self._state is TrainerState.RUNNING:
                if max_ticks is not None and ran >= max_ticks:
                    break
                self._step()
                ran += 1
        finally:
            self._elapsed = self.elapsed_seconds()
            self._segment_start = None
        return ran

    def elapsed_seconds(self) -> float:
        """Wall-clock time spent inside the run loop; telemetry only."""
        if self._segment_start is None:
            return self._elapsed
        return self._elapsed + (time.perf_counter() - self._segment_start)

    def _step(self) -> None:
        if self._world is None:
            self._begin_generation()
        self._world.step()
        self._tick += 1
        self._total_ticks += 1
        if self._tick >= self.config.ticks_per_generation or self._world.extinct():
            self._end_generation()

    def _begin_generation(self) -> None:
        for g in self._neat.population:
            g.fitness = 0.0
        self._world = World(
            self.config,
            self._neat.population,
            mutate=self._neat.mutate,
            rng=self._world_rng,
            generation=self._neat.generation,
        )
        self._tick = 0

    def _end_generation(self) -> None:
        world = self._world
        neat = self._neat
        population = list(neat.population)

        self._total_births += world.births
        self._total_deaths += world.deaths
        fitness = fitness_stats(g.fitness for g in population)
        complexity = complexity_stats(population)
        self._elites = [g.clone() for g in top_genomes(population, self.config.elite_count)]

        neat.evolve()

        elapsed = self.elapsed_seconds()
        progress = TrainingProgress(
            generation=neat.generation,
            tick=self._tick,
            population=len(world.agents),
            best_fitness=fitness.max,
            avg_fitness=fitness.avg,
            avg_nodes=complexity.avg_nodes,
            avg_connections=complexity.avg_connections,
            max_nodes=complexity.max_nodes,
            max_connections=complexity.max_connections,
            elite_genomes=list(self._elites),
            best_fitness_ever=neat.best_fitness_ever,
            total_births=self._total_births,
            total_deaths=self._total_deaths,
            ticks_per_second=self._total_ticks / elapsed if elapsed > 0 else 0.0,
            elapsed_seconds=elapsed,
            complexity_score=complexity.score,
            species_count=len(neat.species),
        )
        self._progress = progress
        self.history.append(progress)
        self._world = None
        logger.info(
            f"[HeadlessTrainer] Gen {progress.generation}: best {progress.best_fitness:.1f} "
            f"avg {progress.avg_fitness:.1f} survivors {progress.population} "
            f"species {progress.species_count} nodes {progress.avg_nodes:.1f} "
            f"conns {progress.avg_connections:.1f}"
        )
        if self.on_progress is not None:
            self.on_progress(progress)

        if neat.generation % self.config.save_interval == 0:
            self._autosave()

        target = self.config.target_fitness
        limit = self.config.max_generations
        if (limit is not None and neat.generation >= limit) or (
            target is not None and fitness.max >= target
        ):
            self._complete()

    def _autosave(self) -> None:
        if self.config.checkpoint_dir is None and self.on_checkpoint is None:
            return
        path = None
        if self.config.checkpoint_dir is not None:
            path = Path(self.config.checkpoint_dir) / f"checkpoint_gen{self._neat.generation:06d}.json"
        checkpoint = self.save_checkpoint(path)
        if self.on_checkpoint is not None:
            self.on_checkpoint(checkpoint)

    def _complete(self) -> None:
        with self._lock:
            if self._state is TrainerState.STOPPED:
                return
            self._state = TrainerState.COMPLETED
        logger.info(
            f"[HeadlessTrainer] Completed after {self._neat.generation} generations "
            f"(best ever {self._progress.best_fitness_ever:.1f})"
        )
        if self.on_complete is not None:
            self.on_complete(self._progress)
