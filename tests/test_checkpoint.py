import json
import pathlib
import sys
import tempfile
import unittest

import numpy as np


ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from neuroarena.core.checkpoint import (
    CHECKPOINT_VERSION,
    TrainingCheckpoint,
    TrainingProgress,
    export_genomes,
    import_genomes,
    latest_checkpoint,
)
from neuroarena.core.config import INPUT_SIZE, OUTPUT_SIZE, TrainingConfig
from neuroarena.core.errors import SerializationError
from neuroarena.neat.population import Neat


def sample_checkpoint(generation: int = 7) -> TrainingCheckpoint:
    neat = Neat(INPUT_SIZE, OUTPUT_SIZE, 4, rng=np.random.default_rng(3))
    for genome in neat.population:
        neat.mutate(genome)
    elites = [g.clone() for g in neat.population]
    progress = TrainingProgress(
        generation=generation,
        best_fitness=42.0,
        avg_fitness=10.5,
        best_fitness_ever=55.0,
        total_births=12,
        total_deaths=30,
        species_count=2,
        elite_genomes=list(elites),
    )
    return TrainingCheckpoint(config=TrainingConfig().to_dict(), progress=progress, elite_genomes=elites)


class TestCheckpointFiles(unittest.TestCase):
    def test_save_and_load(self) -> None:
        original = sample_checkpoint()
        with tempfile.TemporaryDirectory() as tmp:
            path = original.save(pathlib.Path(tmp) / "nested" / "checkpoint.json")
            loaded = TrainingCheckpoint.load(path)

        self.assertEqual(loaded.version, CHECKPOINT_VERSION)
        self.assertEqual(loaded.progress.generation, 7)
        self.assertEqual(loaded.progress.best_fitness_ever, 55.0)
        self.assertEqual(loaded.progress.total_births, 12)
        self.assertEqual(len(loaded.elite_genomes), 4)
        self.assertEqual(len(loaded.progress.elite_genomes), 4)
        self.assertEqual(
            [sorted(g.connections) for g in loaded.elite_genomes],
            [sorted(g.connections) for g in original.elite_genomes],
        )
        self.assertEqual(TrainingConfig.from_dict(loaded.config).to_dict(), original.config)

    def test_document_uses_camel_case(self) -> None:
        data = sample_checkpoint().to_dict()
        self.assertEqual(set(data), {"version", "timestamp", "config", "progress", "eliteGenomes"})
        self.assertIn("bestFitnessEver", data["progress"])
        self.assertEqual(data["progress"]["eliteGenomes"], [])
        self.assertIn("inputSize", data["eliteGenomes"][0])

    def test_non_finite_values_are_written_as_null(self) -> None:
        checkpoint = sample_checkpoint()
        checkpoint.progress.best_fitness_ever = float("-inf")
        with tempfile.TemporaryDirectory() as tmp:
            path = checkpoint.save(pathlib.Path(tmp) / "checkpoint.json")
            raw = json.loads(path.read_text())
            loaded = TrainingCheckpoint.load(path)
        self.assertIsNone(raw["progress"]["bestFitnessEver"])
        self.assertEqual(loaded.progress.best_fitness_ever, 0.0)

    def test_unsupported_version_raises(self) -> None:
        data = sample_checkpoint().to_dict()
        data["version"] = "0.9"
        with self.assertRaises(SerializationError):
            TrainingCheckpoint.from_dict(data)

    def test_missing_section_raises(self) -> None:
        data = sample_checkpoint().to_dict()
        del data["eliteGenomes"]
        with self.assertRaises(SerializationError):
            TrainingCheckpoint.from_dict(data)

    def test_malformed_json_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "broken.json"
            path.write_text('{"version": "1.0", ')
            with self.assertRaises(SerializationError):
                TrainingCheckpoint.load(path)

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(SerializationError):
            TrainingCheckpoint.load(pathlib.Path("/nonexistent/checkpoint.json"))

    def test_mixed_elite_shapes_raise(self) -> None:
        data = sample_checkpoint().to_dict()
        data["eliteGenomes"][0]["inputSize"] = 2
        data["eliteGenomes"][0]["nodes"] = [
            {"id": 0, "type": "input", "activation": "leaky_relu"},
            {"id": 1, "type": "input", "activation": "leaky_relu"},
            {"id": 2, "type": "output", "activation": "tanh"},
            {"id": 3, "type": "output", "activation": "tanh"},
            {"id": 4, "type": "output", "activation": "tanh"},
        ]
        data["eliteGenomes"][0]["connections"] = []
        with self.assertRaises(SerializationError):
            TrainingCheckpoint.from_dict(data)


class TestGenomeExport(unittest.TestCase):
    def test_export_and_import(self) -> None:
        elites = sample_checkpoint().elite_genomes
        with tempfile.TemporaryDirectory() as tmp:
            path = export_genomes(elites, pathlib.Path(tmp) / "elites.json")
            restored = import_genomes(path)
        self.assertEqual(len(restored), len(elites))
        self.assertEqual(restored[0].input_size, INPUT_SIZE)

    def test_import_rejects_objects(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "elites.json"
            path.write_text("{}")
            with self.assertRaises(SerializationError):
                import_genomes(path)

    def test_latest_checkpoint_picks_highest_generation(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            directory = pathlib.Path(tmp)
            for gen in (2, 10, 4):
                (directory / f"checkpoint_gen{gen:06d}.json").write_text("{}")
            self.assertEqual(latest_checkpoint(directory).name, "checkpoint_gen000010.json")
            self.assertIsNone(latest_checkpoint(directory / "missing"))


if __name__ == "__main__":
    unittest.main()
