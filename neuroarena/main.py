from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from neuroarena.core.checkpoint import latest_checkpoint
from neuroarena.core.config import TRAINING_PRESETS, TrainingConfig, read_mapping, with_overrides
from neuroarena.core.errors import ConfigurationError, SerializationError
from neuroarena.core.log import setup_logging
from neuroarena.core.trainer import HeadlessTrainer
from neuroarena.state_manager import StateManager


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Headless NEAT arena trainer")
    parser.add_argument(
        "--preset",
        choices=tuple(TRAINING_PRESETS),
        default="standard",
        help="Training preset to start from (default: standard)",
    )
    parser.add_argument("--config", type=str, help="JSON file merged over the preset")
    parser.add_argument("--generations", type=int, help="Stop after this many generations")
    parser.add_argument(
        "--unbounded",
        action="store_true",
        help="Run until interrupted or the target fitness is reached",
    )
    parser.add_argument("--ticks", type=int, help="Simulation ticks per generation")
    parser.add_argument("--population", type=int, help="Number of genomes per generation")
    parser.add_argument("--seed", type=int, help="Seed for every random draw")
    parser.add_argument("--elite-count", type=int, help="Genomes kept as elites per generation")
    parser.add_argument("--target-fitness", type=float, help="Complete once best fitness reaches this")
    parser.add_argument("--checkpoint-dir", type=str, help="Directory for periodic checkpoints")
    parser.add_argument(
        "--resume",
        nargs="?",
        const="",
        default=None,
        metavar="CHECKPOINT",
        help="Continue from a checkpoint (default: the last one used or the newest in --checkpoint-dir)",
    )
    parser.add_argument("--export-elites", type=str, metavar="FILE", help="Write final elites here")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"),
    )
    parser.add_argument("--log-dir", type=str, help="Also write logs to a file in this directory")
    parser.add_argument("--state-file", type=str, help="Where to remember the last checkpoint/export")
    return parser.parse_args(list(argv))


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "max_generations": args.generations,
        "ticks_per_generation": args.ticks,
        "population_size": args.population,
        "seed": args.seed,
        "elite_count": args.elite_count,
        "target_fitness": args.target_fitness,
        "checkpoint_dir": args.checkpoint_dir,
    }


def _apply_unbounded(config: TrainingConfig, args: argparse.Namespace) -> TrainingConfig:
    if args.unbounded:
        config.max_generations = None
    return config


def build_config(args: argparse.Namespace) -> TrainingConfig:
    config = TrainingConfig.from_preset(args.preset)
    if args.config:
        config.update_from_mapping(read_mapping(Path(args.config)))
    config = with_overrides(config, **_overrides(args))
    config = _apply_unbounded(config, args)
    config.validate()
    return config


def resolve_resume(args: argparse.Namespace, state: StateManager) -> Optional[Path]:
    if args.resume:
        return Path(args.resume).expanduser()
    remembered = state.get_checkpoint()
    if remembered is not None and remembered.exists():
        return remembered
    if args.checkpoint_dir:
        return latest_checkpoint(Path(args.checkpoint_dir))
    return None


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(argv if argv is not None else sys.argv[1:])
    args = parse_args(argv)
    setup_logging(args.log_level, Path(args.log_dir) if args.log_dir else None)
    state = StateManager(Path(args.state_file) if args.state_file else None)

    trainer = HeadlessTrainer()
    try:
        if args.resume is not None:
            checkpoint = resolve_resume(args, state)
            if checkpoint is None:
                logger.error("[Main] No checkpoint to resume from")
                return 2
            trainer.load_checkpoint(checkpoint)
            config = _apply_unbounded(with_overrides(trainer.config, **_overrides(args)), args)
        else:
            config = build_config(args)
            if args.config:
                state.set_config(Path(args.config))

        try:
            trainer.start(config)
        except KeyboardInterrupt:
            logger.warning("[Main] Interrupted; stopping")
            trainer.stop()

        checkpoint_dir = trainer.config.checkpoint_dir
        if checkpoint_dir:
            final = Path(checkpoint_dir) / f"checkpoint_gen{trainer.progress.generation:06d}.json"
            trainer.save_checkpoint(final)
        if trainer.last_checkpoint_path is not None:
            state.set_checkpoint(trainer.last_checkpoint_path)
        if args.export_elites:
            state.set_export(trainer.export_elites(Path(args.export_elites)))
    except (ConfigurationError, SerializationError) as exc:
        logger.error(f"[Main] {exc}")
        return 2

    progress = trainer.progress
    logger.info(
        f"[Main] Finished ({trainer.state.value}) at generation {progress.generation}: "
        f"best ever {progress.best_fitness_ever:.1f}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
