from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from gym_registry.config import settings
from gym_registry.context import GymContext
from gym_registry.core.exceptions import RegistryError, error_result
from gym_registry.initial_data import seed_default_admin


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gym-registry", description=settings.PROJECT_NAME)
    parser.add_argument("--data-dir", type=Path, default=None, help="Override DATA_DIR")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("report", help="Print the registry report as JSON")
    commands.add_parser("backup", help="Copy the database into a timestamped backup directory")
    commands.add_parser("seed", help="Create the default admin if the registry is empty")
    search = commands.add_parser("search", help="Search users by id, name, email or role fields")
    search.add_argument("term")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL)
    config = settings.model_copy(update={"DATA_DIR": args.data_dir}) if args.data_dir else settings

    try:
        with GymContext(settings=config) as context:
            if args.command == "report":
                print(context.report().model_dump_json(indent=2))
                return 0
            if args.command == "backup":
                return 0 if context.backup() else 1
            if args.command == "seed":
                created = seed_default_admin(context.registry, config)
                print(json.dumps({"created": created}))
                return 0
            results = [
                {"id": record.id, "role": record.role.value, "summary": record.describe()}
                for record in context.registry.search(args.term)
            ]
            print(json.dumps(results, indent=2))
            return 0
    except RegistryError as exc:
        print(error_result(exc).model_dump_json(indent=2))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
