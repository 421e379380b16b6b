"""Command line entry point for training and testing MNIST networks."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Iterable, Mapping

from ffnn import config as config_mod
from ffnn.core.types import RunResult
from ffnn.training import pipelines

logger = logging.getLogger(__name__)

MENU_PROMPT = "Choose your option (train (n)ew, train (e)xisting, (t)est or (q)uit):"
MENU_CHOICES = {"n": "new", "e": "existing", "t": "test"}


def configure_logging() -> None:
    """Set up logging from ``FFNN_LOG_LEVEL`` (default ``INFO``)."""

    level_name = os.getenv("FFNN_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _format_result(result: RunResult) -> str:
    payload = {"action": result.action, "model": result.model_path}
    if result.metrics_path:
        payload["metrics"] = result.metrics_path
    if result.manifest_path:
        payload["manifest"] = result.manifest_path
    if result.metrics:
        payload["results"] = result.metrics
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--action",
        choices=["menu", *pipelines.ACTIONS],
        default="menu",
        help="Run one action non-interactively, or show the interactive menu",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(config_mod.presets().keys()),
        default="mnist",
        help="Preset configuration to start from",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--train-csv", help="Training CSV (label + 784 pixels per row)")
    parser.add_argument("--test-csv", help="Test CSV (label + 784 pixels per row)")
    parser.add_argument("--model", help="Model path (the .ffnn extension is optional)")
    parser.add_argument("--epochs", type=int, help="Number of training epochs")
    parser.add_argument("--learning-rate", type=float, help="Override the learning rate")
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation")
    parser.add_argument("--run-dir", help="Directory for metrics and manifests")
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a loss curve to the run dir"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _cli_override(args: argparse.Namespace) -> dict:
    override: dict = {}
    if args.config:
        override = config_mod.load_override(args.config)
    flags = {
        ("data", "train_csv"): args.train_csv,
        ("data", "test_csv"): args.test_csv,
        ("storage", "model_path"): args.model,
        ("train", "epochs"): args.epochs,
        ("train", "learning_rate"): args.learning_rate,
        ("train", "seed"): args.seed,
        ("train", "run_dir"): args.run_dir,
    }
    for (section, key), value in flags.items():
        if value is not None:
            override.setdefault(section, {})[key] = value
    if args.learning_rate is not None:
        override.setdefault("model", {})["learning_rate"] = args.learning_rate
    if args.enable_plots:
        override.setdefault("train", {})["enable_plots"] = True
    return override


def _print_startup_summary(config: Mapping[str, object]) -> None:
    model = config["model"]
    chain = [model["input_size"]] + [layer["output_size"] for layer in model["layers"]]
    print("=== ffnn ===")
    print(f"Layers        : {chain}")
    print(f"Loss          : {model.get('loss')}")
    print(f"Learning rate : {model.get('learning_rate')}")
    print(f"Model file    : {config['storage']['model_path']}")


def run_action(action: str, config: Mapping[str, object]) -> RunResult | None:
    """Run one action, reporting failures instead of raising them."""

    try:
        result = pipelines.run_action(action, config)
    except (OSError, ValueError) as exc:
        verb = "train" if action == "new" else "load"
        logger.error(f"{action} failed: {exc}")
        print(f"Could not {verb} the network! : {exc}")
        return None
    print(_format_result(result))
    return result


def menu(
    config: Mapping[str, object],
    read: Callable[[str], str] = input,
) -> None:
    """Interactive loop: train (n)ew, train (e)xisting, (t)est or (q)uit."""

    while True:
        try:
            choice = read(MENU_PROMPT).strip()
        except EOFError:
            print("Breaking in menu due to end of input")
            return
        if choice == "q":
            print("Have a nice day!")
            return
        action = MENU_CHOICES.get(choice)
        if action is not None:
            run_action(action, config)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging()

    if args.list_presets:
        for name in sorted(config_mod.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = config_mod.resolve(args.preset, override=_cli_override(args))

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    _print_startup_summary(config)
    if args.action == "menu":
        menu(config)
        return
    if run_action(args.action, config) is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
