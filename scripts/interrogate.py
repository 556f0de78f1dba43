#!/usr/bin/env python3
"""Interrogate a CSV table with a YAML validation plan and report the results."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dqagent.errors import DQAgentError
from dqagent.report.builder import report_summary
from dqagent.report.render import write_report
from dqagent.validate.agent import create_agent
from dqagent.validate.config import load_plan, load_settings
from dqagent.validate.constants import ARRANGE_CHOICES, KEEP_CHOICES, SIZE_CHOICES


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a validation plan against a table and print the agent report."
    )
    parser.add_argument("--plan", type=Path, required=True, help="YAML validation plan.")
    parser.add_argument("--data", type=Path, required=True, help="CSV table to interrogate.")
    parser.add_argument("--name", help="Agent name (defaults to the plan name or a timestamp).")
    parser.add_argument("--arrange-by", choices=ARRANGE_CHOICES, default="i")
    parser.add_argument("--keep", choices=KEEP_CHOICES, default="all")
    parser.add_argument("--size", choices=SIZE_CHOICES, default="standard")
    parser.add_argument("--language", help="Reporting language (defaults to the settings value).")
    parser.add_argument("--html", type=Path, help="Optional path for an HTML report.")
    parser.add_argument(
        "--extracts-dir",
        type=Path,
        help="Directory that receives one CSV of failing rows per failing step.",
    )
    parser.add_argument("--settings", type=Path, help="Settings YAML (defaults to the packaged one).")
    parser.add_argument("--workers", type=int, help="Number of steps evaluated in parallel.")
    parser.add_argument("--timeout", type=float, help="Per-step timeout in seconds.")
    parser.add_argument("--verbose", action="store_true", help="Log each evaluated step.")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.plan.exists():
        raise SystemExit(f"Plan file missing at {args.plan}")
    if not args.data.exists():
        raise SystemExit(f"Data file missing at {args.data}")
    if args.settings is not None and not args.settings.exists():
        raise SystemExit(f"Settings file missing at {args.settings}")

    try:
        settings = load_settings(args.settings, max_workers=args.workers, step_timeout=args.timeout)
        configs, plan_name = load_plan(args.plan)
        table = pd.read_csv(args.data)
        agent = create_agent(table, name=args.name or plan_name, settings=settings)
        agent.plan_steps(configs)
        agent.interrogate()
        report = agent.get_report(arrange_by=args.arrange_by, keep=args.keep, language=args.language)
    except (DQAgentError, ValueError) as exc:
        raise SystemExit(f"Interrogation failed: {exc}") from exc

    with pd.option_context("display.max_rows", None, "display.width", 160):
        print(report.to_dataframe(args.size).to_string(index=False))

    if args.html:
        write_report(report, args.html, size=args.size, extracts=agent.extracts)
        print(f"HTML report written to {args.html}")
    if args.extracts_dir:
        for i in sorted(agent.extracts):
            agent.export_extract(i, args.extracts_dir)
        print(f"{len(agent.extracts)} extract(s) written to {args.extracts_dir}")

    counts = report_summary(report)
    print(
        f"Interrogation complete · agent={agent.name} · steps={counts['steps']} "
        f"· errors={counts['ERROR'] + counts['W + E']} · stop={counts['stop']}"
    )
    if counts["stop"]:
        raise SystemExit(f"{counts['stop']} step(s) exceeded their stop threshold.")


if __name__ == "__main__":
    main()
