import pathlib
import sys
import tempfile
import unittest


ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from neuroarena.core.checkpoint import TrainingCheckpoint, latest_checkpoint
from neuroarena.core.config import TrainingConfig, with_overrides
from neuroarena.core.controller import TrainingController
from neuroarena.core.errors import SerializationError, TrainerStateError
from neuroarena.core.trainer import HeadlessTrainer, TrainerState
from neuroarena.neat.genome import Genome


def small_config(**overrides) -> TrainingConfig:
    config = TrainingConfig(
        max_generations=5,
        ticks_per_generation=100,
        elite_count=3,
        population_size=12,
        save_interval=10,
        seed=3,
    )
    config.world.width = 600.0
    config.world.height = 400.0
    config.world.initial_food = 60
    config.world.max_food = 150
    config.world.food_spawn_rate = 2
    config.world.max_population = 40
    config.world.use_obstacles = False
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


class TestHeadlessTrainer(unittest.TestCase):
    def test_runs_to_completion(self) -> None:
        snapshots = []
        finished = []
        trainer = HeadlessTrainer(small_config(), on_progress=snapshots.append, on_complete=finished.append)

        trainer.start()

        self.assertIs(trainer.state, TrainerState.COMPLETED)
        self.assertEqual([p.generation for p in snapshots], [1, 2, 3, 4, 5])
        self.assertEqual(len(finished), 1)
        self.assertEqual(trainer.history, snapshots)
        for progress in snapshots:
            self.assertLessEqual(len(progress.elite_genomes), 3)
            self.assertGreater(progress.avg_nodes, 0.0)
        self.assertTrue(all(g.input_size == 14 and g.output_size == 3 for g in trainer.elites))

    def test_same_seed_gives_same_history(self) -> None:
        runs = []
        for _ in range(2):
            trainer = HeadlessTrainer(small_config(max_generations=2))
            trainer.start()
            runs.append([(p.best_fitness, p.total_births, p.population) for p in trainer.history])
        self.assertEqual(runs[0], runs[1])

    def test_pause_and_resume(self) -> None:
        snapshots = []
        trainer = HeadlessTrainer(small_config())

        def on_progress(progress):
            snapshots.append(progress.generation)
            if progress.generation == 2:
                trainer.pause()

        trainer.on_progress = on_progress
        trainer.start()
        self.assertIs(trainer.state, TrainerState.PAUSED)
        self.assertEqual(snapshots, [1, 2])

        with self.assertRaises(TrainerStateError):
            trainer.start()

        trainer.resume()
        self.assertIs(trainer.state, TrainerState.COMPLETED)
        self.assertEqual(snapshots, [1, 2, 3, 4, 5])

    def test_pause_mid_generation_keeps_world(self) -> None:
        trainer = HeadlessTrainer(small_config(max_generations=1))
        trainer.start(run=False)
        self.assertEqual(trainer.advance(40), 40)
        world = trainer.world
        trainer.pause()
        self.assertEqual(trainer.advance(10), 0)
        trainer.resume(run=False)
        trainer.advance(5)
        self.assertIs(trainer.world, world)
        self.assertEqual(trainer.tick, 45)

    def test_stop_returns_elites(self) -> None:
        trainer = HeadlessTrainer(small_config())

        def on_progress(progress):
            if progress.generation == 2:
                trainer.stop()

        trainer.on_progress = on_progress
        trainer.start()
        elites = trainer.stop()
        self.assertIs(trainer.state, TrainerState.STOPPED)
        self.assertEqual(len(trainer.history), 2)
        self.assertTrue(0 < len(elites) <= 3)
        self.assertTrue(all(isinstance(g, Genome) for g in elites))

    def test_resume_requires_pause(self) -> None:
        trainer = HeadlessTrainer(small_config())
        with self.assertRaises(TrainerStateError):
            trainer.resume()

    def test_target_fitness_completes_early(self) -> None:
        trainer = HeadlessTrainer(small_config(max_generations=None, target_fitness=-1e9))
        trainer.start()
        self.assertIs(trainer.state, TrainerState.COMPLETED)
        self.assertEqual(len(trainer.history), 1)

    def test_checkpoint_callback_fires_on_interval(self) -> None:
        saved = []
        trainer = HeadlessTrainer(small_config(max_generations=4, save_interval=2), on_checkpoint=saved.append)
        trainer.start()
        self.assertEqual([c.progress.generation for c in saved], [2, 4])
        self.assertTrue(all(isinstance(c, TrainingCheckpoint) for c in saved))


class TestCheckpointResume(unittest.TestCase):
    def test_resume_continues_generation_count(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            first = HeadlessTrainer(small_config(max_generations=4, save_interval=2, checkpoint_dir=tmp))
            first.start()
            path = latest_checkpoint(pathlib.Path(tmp))
            self.assertEqual(path.name, "checkpoint_gen000004.json")
            self.assertEqual(first.last_checkpoint_path, path)

            second = HeadlessTrainer()
            second.load_checkpoint(path)
            self.assertIs(second.state, TrainerState.IDLE)
            self.assertEqual(second.progress.generation, 4)
            self.assertEqual(second.config.population_size, 12)

            second.start(with_overrides(second.config, max_generations=6))
            self.assertIs(second.state, TrainerState.COMPLETED)
            self.assertEqual([p.generation for p in second.history], [5, 6])

    def test_incompatible_genomes_are_rejected(self) -> None:
        checkpoint = HeadlessTrainer(small_config()).save_checkpoint()
        checkpoint.elite_genomes = [Genome(8, 3)]
        with self.assertRaises(SerializationError):
            HeadlessTrainer().load_checkpoint(checkpoint)

    def test_mistyped_config_is_rejected(self) -> None:
        data = HeadlessTrainer(small_config()).save_checkpoint().to_dict()
        for value in ("ten", 0, None):
            data["config"]["population_size"] = value
            with self.subTest(value=value), self.assertRaises(SerializationError):
                HeadlessTrainer().load_checkpoint(data)

    def test_population_override_resizes_engine(self) -> None:
        first = HeadlessTrainer(small_config(max_generations=1))
        first.start()
        checkpoint = first.save_checkpoint()

        for size in (20, 5):
            trainer = HeadlessTrainer()
            trainer.load_checkpoint(checkpoint)
            self.assertEqual(len(trainer.neat.population), 12)
            trainer.start(with_overrides(trainer.config, population_size=size, max_generations=3), run=False)
            with self.subTest(size=size):
                self.assertEqual(trainer.config.population_size, size)
                self.assertEqual(trainer.neat.population_size, size)
                self.assertEqual(len(trainer.neat.population), size)
            trainer.stop()

    def test_save_before_any_generation_uses_population(self) -> None:
        trainer = HeadlessTrainer(small_config())
        trainer.start(run=False)
        checkpoint = trainer.save_checkpoint()
        self.assertEqual(len(checkpoint.elite_genomes), 3)

    def test_export_elites(self) -> None:
        trainer = HeadlessTrainer(small_config(max_generations=1))
        trainer.start()
        with tempfile.TemporaryDirectory() as tmp:
            path = trainer.export_elites(pathlib.Path(tmp) / "elites.json")
            self.assertTrue(path.exists())


class TestTrainingController(unittest.TestCase):
    def test_background_run_completes(self) -> None:
        controller = TrainingController(small_config(max_generations=3))
        seen = []
        controller.add_listener(lambda p: seen.append(p.generation))

        self.assertTrue(controller.start())
        self.assertTrue(controller.wait(120))

        self.assertIs(controller.state, TrainerState.COMPLETED)
        self.assertIsNone(controller.error)
        self.assertEqual(seen, [1, 2, 3])
        self.assertEqual(controller.last_progress.generation, 3)

    def test_pause_resume_in_background(self) -> None:
        controller = TrainingController(small_config(max_generations=3))
        controller.add_listener(lambda p: controller.pause() if p.generation == 1 else None)

        controller.start()
        self.assertTrue(controller.wait(120))
        self.assertIs(controller.state, TrainerState.PAUSED)
        self.assertFalse(controller.start())

        self.assertTrue(controller.resume())
        self.assertTrue(controller.wait(120))
        self.assertIs(controller.state, TrainerState.COMPLETED)
        self.assertEqual(controller.last_progress.generation, 3)

    def test_stop_from_outside(self) -> None:
        controller = TrainingController(small_config(max_generations=None))
        controller.add_listener(lambda p: controller.pause() if p.generation == 1 else None)
        controller.start()
        controller.wait(120)
        elites = controller.stop(timeout=30)
        self.assertIs(controller.state, TrainerState.STOPPED)
        self.assertTrue(len(elites) > 0)


if __name__ == "__main__":
    unittest.main()
