"""Utility for manually running a solution through the execution engine.

Point it at a source file and a JSON file holding the test cases (and
optionally the function metadata) to see the exact result the engine
would hand back to the platform::

    python tools/manual_runner.py \
        --code solution.go \
        --language go \
        --cases cases.json \
        --function double \
        --param-type int

``cases.json`` is either a list of test cases or an object with
``testCases`` and ``metadata`` keys.  Use ``--native``/``--no-native`` to
override the compiled-language backend preference of the config file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict

from dispatcher import config as executor_config
from dispatcher.dispatcher import Dispatcher


def load_cases(cases_path: Path) -> Dict[str, Any]:
    """Return test cases and metadata found in ``cases_path``."""

    with cases_path.open() as handle:
        data = json.load(handle)
    if isinstance(data, list):
        return {"testCases": data, "metadata": {}}
    return {
        "testCases": data.get("testCases", []),
        "metadata": data.get("metadata", {}),
    }


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--code",
        required=True,
        type=Path,
        help="path to the solution source file",
    )
    parser.add_argument(
        "--language",
        required=True,
        help="script/compiled/server-side or an alias such as ts, go, php",
    )
    parser.add_argument(
        "--cases",
        required=True,
        type=Path,
        help="JSON file with the test cases",
    )
    parser.add_argument(
        "--function",
        help="function name (overrides metadata in the cases file)",
    )
    parser.add_argument(
        "--param-type",
        action="append",
        default=None,
        help="parameter type tag, repeat once per parameter",
    )
    parser.add_argument(
        "--native",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="prefer the host go toolchain for compiled code",
    )
    parser.add_argument(
        "--config",
        default=Path(".config/executor.json"),
        type=Path,
        help="path to executor configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="print engine logs to stderr",
    )
    return parser.parse_args()


def main() -> None:
    """CLI entry point."""

    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    cases = load_cases(args.cases)
    metadata = dict(cases["metadata"])
    if args.function:
        metadata["functionName"] = args.function
    if args.param_type is not None:
        metadata["parameterTypes"] = args.param_type

    cfg = executor_config.get_executor_config(args.config)
    if args.native is not None:
        cfg = cfg.model_copy(update={"useNativeCompiled": args.native})

    dispatcher = Dispatcher(cfg)
    result = asyncio.run(
        dispatcher.execute(
            code=args.code.read_text(),
            test_cases=cases["testCases"],
            metadata=metadata,
            language=args.language,
        ))
    print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
