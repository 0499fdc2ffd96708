# SPDX-License-Identifier: MIT
"""
Evolution engine: population, innovation history and the generational step.

All innovation and species counters live on one ``Neat`` instance so several
independent runs can coexist in the same process.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from neuroarena.core.config import NeatConfig
from neuroarena.core.errors import ConfigurationError, ExhaustedRetries
from neuroarena.neat.genes import INPUT, OUTPUT, ConnectionGene
from neuroarena.neat.genome import Genome
from neuroarena.neat.species import Species

INITIAL_WEIGHT_RANGE = 1.5
NEW_CONNECTION_WEIGHT_RANGE = 1.0
CONNECTION_ATTEMPTS = 10
TOURNAMENT_SIZE = 3
CLONE_P = 0.25
SPECIES_FITNESS_FLOOR = 0.1


class Neat:
    def __init__(
        self,
        input_size: int,
        output_size: int,
        population_size: int,
        config: Optional[NeatConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if input_size <= 0 or output_size <= 0 or population_size <= 0:
            raise ConfigurationError(
                "input_size, output_size and population_size must be positive "
                f"(got {input_size}, {output_size}, {population_size})"
            )
        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.population_size = int(population_size)
        self.config = config or NeatConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

        self._innovation_lock = threading.Lock()
        self.innovation_history: Dict[Tuple[int, int], int] = {}
        self.next_innovation = 0
        self.next_species_id = 0
        self.generation = 0
        self.best_fitness_ever = float("-inf")
        self.best_genome: Optional[Genome] = None
        self.species: List[Species] = []

        self.population: List[Genome] = [
            self.create_minimal_genome() for _ in range(self.population_size)
        ]
        logger.info(
            f"[Neat] Initialized {self.population_size} genomes: "
            f"{self.input_size} inputs -> {self.output_size} outputs"
        )

    # ---------- イノベーション ----------
    def get_innovation(self, src: int, dst: int) -> int:
        key = (src, dst)
        with self._innovation_lock:
            innovation = self.innovation_history.get(key)
            if innovation is None:
                innovation = self.next_innovation
                self.innovation_history[key] = innovation
                self.next_innovation += 1
            return innovation

    def register_genome(self, genome: Genome) -> None:
        """Fold an externally created genome's edges into the history."""
        with self._innovation_lock:
            for c in genome.connections.values():
                self.innovation_history.setdefault((c.src, c.dst), c.innovation)
                if c.innovation >= self.next_innovation:
                    self.next_innovation = c.innovation + 1

    def create_minimal_genome(self) -> Genome:
        genome = Genome(self.input_size, self.output_size)
        for i in genome.input_ids:
            for o in genome.output_ids:
                innovation = self.get_innovation(i, o)
                weight = float(self.rng.uniform(-INITIAL_WEIGHT_RANGE, INITIAL_WEIGHT_RANGE))
                genome.connections[innovation] = ConnectionGene(innovation, i, o, weight, True)
        return genome

    def seed_population(self, genomes: Iterable[Genome]) -> None:
        """Replace the population with ``genomes`` topped up by mutated clones."""
        seeds = [g.clone() for g in genomes]
        if not seeds:
            return
        for g in seeds:
            if g.input_size != self.input_size or g.output_size != self.output_size:
                raise ConfigurationError(
                    f"seed genome is {g.input_size}x{g.output_size}, "
                    f"engine expects {self.input_size}x{self.output_size}"
                )
            self.register_genome(g)
            g.fitness = 0.0
        population = seeds[: self.population_size]
        i = 0
        while len(population) < self.population_size:
            child = seeds[i % len(seeds)].clone()
            self.mutate(child)
            child.fitness = 0.0
            population.append(child)
            i += 1
        self.population = population
        self.species = []
        logger.info(f"[Neat] Seeded population from {len(seeds)} genomes")

    def resize(self, population_size: int) -> None:
        """Change the target size, truncating or topping up the current population."""
        if population_size <= 0:
            raise ConfigurationError(f"population_size must be positive, got {population_size}")
        if population_size == self.population_size:
            return
        logger.info(f"[Neat] Resizing population {self.population_size} -> {population_size}")
        self.population_size = int(population_size)
        self.seed_population(self.population)

    # ---------- 変異 ----------
    def mutate(self, genome: Genome) -> None:
        cfg = self.config
        genome.mutate_weights(cfg.mutation_rate, cfg.mutation_size, self.rng)

        if self.rng.random() < cfg.add_node_rate:
            enabled = [c for c in genome.connections.values() if c.enabled]
            if enabled:
                conn = enabled[int(self.rng.integers(len(enabled)))]
                new_id = genome.next_node_id()
                genome.add_node(
                    self.get_innovation(conn.src, new_id),
                    conn,
                    self.get_innovation(new_id, conn.dst),
                )

        if self.rng.random() < cfg.add_connection_rate:
            self.try_add_connection(genome)

        genome.mutate_activation(cfg.activation_mutation_rate, self.rng)

    def try_add_connection(
        self, genome: Genome, attempts: int = CONNECTION_ATTEMPTS, strict: bool = False
    ) -> bool:
        sources = [nid for nid, n in genome.nodes.items() if n.type != OUTPUT]
        targets = [nid for nid, n in genome.nodes.items() if n.type != INPUT]
        for _ in range(attempts):
            src = sources[int(self.rng.integers(len(sources)))]
            dst = targets[int(self.rng.integers(len(targets)))]
            if src == dst:
                continue
            existing = genome.find_connection(src, dst)
            if existing is not None and existing.enabled:
                continue
            weight = float(self.rng.uniform(-NEW_CONNECTION_WEIGHT_RANGE, NEW_CONNECTION_WEIGHT_RANGE))
            if genome.add_connection(self.get_innovation(src, dst), src, dst, weight):
                return True
        if strict:
            raise ExhaustedRetries("add_connection", attempts)
        return False

    # ---------- 種分化 ----------
    def speciate(self) -> None:
        cfg = self.config
        for sp in self.species:
            sp.members = []

        for genome in self.population:
            for sp in self.species:
                if sp.matches(genome, cfg.compatibility_threshold):
                    sp.members.append(genome)
                    break
            else:
                self.species.append(
                    Species(self.next_species_id, genome.clone(), [genome])
                )
                self.next_species_id += 1

        alive: List[Species] = []
        for sp in self.species:
            if not sp.members:
                continue
            sp.update_stagnation()
            sp.representative = sp.members[int(self.rng.integers(len(sp.members)))].clone()
            alive.append(sp)

        if len(alive) > 1:
            fresh = [sp for sp in alive if sp.stagnation < cfg.stagnation_limit]
            if not fresh and self.population:
                reseeded = Species(
                    self.next_species_id, self.population[0].clone(), list(self.population)
                )
                self.next_species_id += 1
                reseeded.update_stagnation()
                logger.debug(
                    f"[Neat] All {len(alive)} species stagnant; reseeded species {reseeded.species_id}"
                )
                fresh = [reseeded]
            alive = fresh
        self.species = alive

    # ---------- 選択 ----------
    def _tournament(self, members: List[Genome]) -> Genome:
        best: Optional[Genome] = None
        for _ in range(TOURNAMENT_SIZE):
            candidate = members[int(self.rng.integers(len(members)))]
            if best is None or candidate.fitness > best.fitness:
                best = candidate
        return best

    def _pick_species(self) -> Species:
        weights = np.array(
            [max(sp.mean_fitness(), SPECIES_FITNESS_FLOOR) for sp in self.species], dtype=np.float64
        )
        idx = int(self.rng.choice(len(self.species), p=weights / weights.sum()))
        return self.species[idx]

    def _offspring(self) -> Genome:
        if not self.species:
            return self.create_minimal_genome()
        members = self._pick_species().members
        if len(members) == 1 or self.rng.random() < CLONE_P:
            child = self._tournament(members).clone()
        else:
            a = self._tournament(members)
            b = self._tournament(members)
            child = a.crossover(b, a.fitness >= b.fitness, self.rng)
        self.mutate(child)
        child.fitness = 0.0
        return child

    def evolve(self) -> None:
        self.population.sort(key=lambda g: g.fitness, reverse=True)
        if self.population and self.population[0].fitness > self.best_fitness_ever:
            self.best_fitness_ever = self.population[0].fitness
            self.best_genome = self.population[0].clone()

        self.speciate()

        elite_count = min(int(self.population_size * self.config.elitism), len(self.population))
        next_population = [g.clone() for g in self.population[:elite_count]]
        while len(next_population) < self.population_size:
            next_population.append(self._offspring())

        self.population = next_population
        self.generation += 1
        logger.debug(
            f"[Neat] Generation {self.generation}: {len(self.species)} species, "
            f"best ever {self.best_fitness_ever:.2f}"
        )
