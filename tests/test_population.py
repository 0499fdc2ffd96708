import pathlib
import sys
import unittest

import numpy as np


ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from neuroarena.core.config import NeatConfig
from neuroarena.core.errors import ConfigurationError, ExhaustedRetries
from neuroarena.neat.genome import Genome
from neuroarena.neat.population import Neat


def engine(inputs: int = 8, outputs: int = 3, size: int = 50, seed: int = 0) -> Neat:
    return Neat(inputs, outputs, size, rng=np.random.default_rng(seed))


class TestInitialPopulation(unittest.TestCase):
    def test_minimal_genomes_are_fully_connected(self) -> None:
        neat = engine()
        self.assertEqual(len(neat.population), 50)
        for genome in neat.population:
            self.assertEqual(len(genome.nodes), 11)
            self.assertEqual(genome.enabled_connection_count, 24)
            self.assertEqual(genome.hidden_count, 0)
        self.assertEqual(neat.next_innovation, 24)

    def test_initial_genomes_share_innovation_numbers(self) -> None:
        neat = engine(size=5)
        keys = {tuple(sorted(g.connections)) for g in neat.population}
        self.assertEqual(len(keys), 1)

    def test_non_positive_sizes_raise(self) -> None:
        with self.assertRaises(ConfigurationError):
            Neat(0, 3, 10)
        with self.assertRaises(ConfigurationError):
            Neat(8, 3, 0)


class TestInnovationHistory(unittest.TestCase):
    def test_same_edge_gets_same_innovation(self) -> None:
        neat = engine(size=2)
        first = neat.get_innovation(3, 99)
        self.assertEqual(first, 24)
        self.assertEqual(neat.get_innovation(3, 99), first)
        self.assertEqual(neat.get_innovation(99, 8), 25)

    def test_identical_split_in_two_genomes_matches(self) -> None:
        neat = engine(size=2)
        a, b = neat.population
        for genome in (a, b):
            conn = genome.connections[0]
            new_id = genome.next_node_id()
            genome.add_node(
                neat.get_innovation(conn.src, new_id),
                conn,
                neat.get_innovation(new_id, conn.dst),
            )
        self.assertEqual(set(a.connections), set(b.connections))

    def test_engines_are_independent(self) -> None:
        first = engine(size=2)
        second = engine(size=2)
        first.get_innovation(0, 500)
        self.assertEqual(second.get_innovation(1, 500), 24)

    def test_same_seed_evolves_identically(self) -> None:
        runs = []
        for _ in range(2):
            neat = engine(size=20, seed=11)
            for _ in range(3):
                for i, genome in enumerate(neat.population):
                    genome.fitness = float(i % 7)
                neat.evolve()
            runs.append(dict(neat.innovation_history))
        self.assertEqual(runs[0], runs[1])

    def test_register_genome_advances_counter(self) -> None:
        neat = engine(size=2)
        foreign = Genome(8, 3)
        foreign.add_connection(40, 0, 8, 0.5)
        neat.register_genome(foreign)
        self.assertEqual(neat.innovation_history[(0, 8)], 0)
        self.assertEqual(neat.next_innovation, 41)


class TestConnectionSearch(unittest.TestCase):
    def test_saturated_genome_exhausts_attempts(self) -> None:
        neat = engine(inputs=1, outputs=1, size=1)
        genome = neat.population[0]
        self.assertFalse(neat.try_add_connection(genome, attempts=5))
        with self.assertRaises(ExhaustedRetries) as ctx:
            neat.try_add_connection(genome, attempts=5, strict=True)
        self.assertEqual(ctx.exception.attempts, 5)

    def test_disabled_edge_is_reenabled(self) -> None:
        neat = engine(inputs=1, outputs=1, size=1)
        genome = neat.population[0]
        genome.connections[0].enabled = False
        self.assertTrue(neat.try_add_connection(genome, attempts=50))
        self.assertTrue(genome.connections[0].enabled)


class TestSpeciation(unittest.TestCase):
    def test_initial_population_forms_one_species(self) -> None:
        neat = engine()
        neat.speciate()
        self.assertEqual(len(neat.species), 1)
        self.assertEqual(len(neat.species[0].members), 50)

    def test_repeated_speciation_is_stable(self) -> None:
        neat = engine(size=20)
        for i, genome in enumerate(neat.population):
            for conn in genome.connections.values():
                conn.weight = 4.0 if i % 2 == 0 else -4.0
        neat.speciate()
        first = [(sp.species_id, len(sp.members)) for sp in neat.species]
        neat.speciate()
        second = [(sp.species_id, len(sp.members)) for sp in neat.species]
        self.assertEqual(len(first), 2)
        self.assertEqual(first, second)

    def test_stagnant_species_are_dropped(self) -> None:
        neat = Neat(8, 3, 20, NeatConfig(stagnation_limit=2), rng=np.random.default_rng(0))
        for i, genome in enumerate(neat.population):
            genome.fitness = 1.0
            for conn in genome.connections.values():
                conn.weight = 4.0 if i % 2 == 0 else -4.0
        for _ in range(3):
            neat.speciate()
        # both stagnated together, so a single reseeded species holds everyone
        self.assertEqual(len(neat.species), 1)
        self.assertEqual(len(neat.species[0].members), 20)


class TestEvolve(unittest.TestCase):
    def test_population_size_is_preserved(self) -> None:
        neat = engine(size=30)
        rng = np.random.default_rng(5)
        for _ in range(5):
            for genome in neat.population:
                genome.fitness = float(rng.uniform(0.0, 10.0))
            neat.evolve()
            self.assertEqual(len(neat.population), 30)
        self.assertEqual(neat.generation, 5)

    def test_best_fitness_ever_never_decreases(self) -> None:
        neat = engine(size=20)
        rng = np.random.default_rng(9)
        history = []
        for _ in range(6):
            for genome in neat.population:
                genome.fitness = float(rng.uniform(-5.0, 20.0))
            neat.evolve()
            history.append(neat.best_fitness_ever)
        self.assertEqual(history, sorted(history))

    def test_best_genome_survives_as_elite(self) -> None:
        neat = engine(size=20)
        for i, genome in enumerate(neat.population):
            genome.fitness = float(i)
        best = neat.population[-1]
        weights = {k: c.weight for k, c in best.connections.items()}
        neat.evolve()
        self.assertEqual({k: c.weight for k, c in neat.population[0].connections.items()}, weights)
        self.assertIsNot(neat.population[0], best)
        self.assertEqual(neat.best_fitness_ever, 19.0)

    def test_offspring_start_with_zero_fitness(self) -> None:
        neat = engine(size=20)
        for genome in neat.population:
            genome.fitness = 3.0
        neat.evolve()
        elite_count = int(20 * neat.config.elitism)
        self.assertTrue(all(g.fitness == 0.0 for g in neat.population[elite_count:]))


class TestSeeding(unittest.TestCase):
    def test_seed_population_tops_up(self) -> None:
        source = engine(size=3, seed=1)
        neat = engine(size=10, seed=2)
        neat.seed_population(source.population)
        self.assertEqual(len(neat.population), 10)
        self.assertTrue(all(g.fitness == 0.0 for g in neat.population))

    def test_seed_population_rejects_wrong_shape(self) -> None:
        neat = engine(size=4)
        with self.assertRaises(ConfigurationError):
            neat.seed_population([Genome(2, 2)])

    def test_resize_truncates_and_tops_up(self) -> None:
        neat = engine(size=6)
        first = neat.population[0]
        neat.resize(9)
        self.assertEqual((neat.population_size, len(neat.population)), (9, 9))
        neat.resize(4)
        self.assertEqual((neat.population_size, len(neat.population)), (4, 4))
        self.assertEqual(sorted(neat.population[0].connections), sorted(first.connections))
        with self.assertRaises(ConfigurationError):
            neat.resize(0)


if __name__ == "__main__":
    unittest.main()
