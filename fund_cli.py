#!/usr/bin/env python3
"""Command-line runner for the Solidarity Fund Simulator."""

from __future__ import annotations
import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from engine import (
    SCENARIO_REGISTRY,
    SimulationEngine,
    ensure_dir,
    load_config,
    run_monte_carlo,
    save_balance_plot,
)


def load_config_file(path: Path) -> dict:
    text = path.read_text()
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: configuration must be a JSON object")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Solidarity Fund Simulator CLI")
    parser.add_argument("config", type=Path, nargs="?", default=None, help="Path to JSON config file")
    parser.add_argument("--scenario", choices=sorted(SCENARIO_REGISTRY), default=None,
                        help="Preset the config is merged over (default: realistic)")
    parser.add_argument("--days", type=int, default=None, help="Override simulationDays")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--no-variation", action="store_true", help="Fix the daily order multiplier at 1.0")
    parser.add_argument("--no-governance", action="store_true", help="Disable automatic fee governance")
    parser.add_argument("--monte-carlo", type=int, default=0, help="Number of MC runs")
    parser.add_argument("--out", type=Path, default=Path("outputs"), help="Output directory")
    parser.add_argument("--pdf", action="store_true", help="Also render a PDF report")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s │ %(levelname)-5s │ %(name)-16s │ %(message)s",
    )

    cfg = load_config_file(args.config) if args.config else {}
    if args.scenario:
        cfg["scenario"] = args.scenario
    if args.days is not None:
        cfg["simulationDays"] = int(args.days)
    if args.seed is not None:
        cfg["seed"] = int(args.seed)
    if args.no_variation:
        cfg["variation"] = False
    if args.no_governance:
        cfg["governance"] = False

    params, opts = load_config(cfg)

    if args.monte_carlo and args.monte_carlo > 1:
        opts["base_seed"] = opts.pop("seed", None)
        runs_df, stats_df = run_monte_carlo(params, n_runs=args.monte_carlo, **opts)
        print("Monte Carlo summary:")
        print(stats_df.round(3).to_string(index=False))
        ensure_dir(str(args.out))
        out_path = args.out / "mc_runs.csv"
        runs_df.to_csv(out_path, index=False)
        print(f"Saved runs → {out_path}")
        return

    engine = SimulationEngine(params, **opts)
    output = engine.run()
    print("Metrics:")
    print({k: round(v, 3) if isinstance(v, float) else v for k, v in output.metrics.to_dict().items()})
    if output.recommendations:
        print("Recommendations:")
        for rec in output.recommendations:
            print(f" - {rec}")

    ensure_dir(str(args.out))
    df = engine.results_frame()
    log_path = args.out / "daily_log.csv"
    df.to_csv(log_path, index=False)
    export_path = args.out / "export.json"
    export_path.write_text(json.dumps(engine.export(), indent=2))
    print(f"Saved log → {log_path}")
    print(f"Saved export → {export_path}")

    if args.pdf:
        from report import make_pdf

        png_path = args.out / "fund_balance.png"
        save_balance_plot(df, "Fund balance", str(png_path))
        pdf_path = make_pdf(engine.export(), str(args.out / "fund_report.pdf"), balance_png=str(png_path))
        print(f"Saved report → {pdf_path}")


if __name__ == "__main__":
    main()
