"""
One-button runner for the skill benefit estimator.

Usage:
    python run.py scenario.json data_dir mypackage.engine:compare

    # With a track-specific production override:
    python run.py scenario.json data_dir mypackage.engine:compare --config production_config.json

Everything else comes from production_config.json (or the 'standard' profile
when that file does not exist).
"""

import sys
import argparse
import json
import logging
from pathlib import Path

from uma_skill_mc.config import load_scenario_from_json
from uma_skill_mc.data import load_static_data
from uma_skill_mc.diagnostics import export_results, format_results_table, summarize_run
from uma_skill_mc.pipeline import run_skill_evaluation
from uma_skill_mc.production import load_production_settings
from uma_skill_mc.profiles import get_profile
from uma_skill_mc.types import RunnerSettings

# Defaults; edit these if your file layout changes
DEFAULT_PRODUCTION_CONFIG = "production_config.json"
DEFAULT_PROFILE = "standard"


def main():
    parser = argparse.ArgumentParser(
        description="One-button skill benefit estimator"
    )
    parser.add_argument("scenario", help="Path to scenario JSON")
    parser.add_argument("data_dir", help="Directory with the static game tables")
    parser.add_argument("engine", help="Race engine import path 'package.module:function'")
    parser.add_argument(
        "--config", default=DEFAULT_PRODUCTION_CONFIG,
        help=f"Production config path (default: {DEFAULT_PRODUCTION_CONFIG})"
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for combo shuffling and random-mode engine seeds"
    )
    parser.add_argument(
        "--output", "-o", default=None,
        help="Output JSON path (default: results_{stem}.json)"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    scenario = load_scenario_from_json(args.scenario)

    # Load production config
    if Path(args.config).exists():
        try:
            settings = load_production_settings(
                args.config, track_name=scenario.track.track_name, seed=args.seed
            )
        except ValueError as e:
            print(f"ERROR: {args.config}: {e}")
            sys.exit(1)
        print(f"Config: {args.config}")
    else:
        runner_kwargs = get_profile(DEFAULT_PROFILE)
        print(f"Config: profile '{DEFAULT_PROFILE}' ({args.config} not found)")
        if args.seed is not None:
            runner_kwargs['seed'] = args.seed
        settings = RunnerSettings.from_dict(runner_kwargs)

    print(f"  Passes: {', '.join(str(b) for b in settings.pass_budgets)}")
    print(f"  Timeout: {settings.timeout_s:g}s")
    print(f"\nScenario: {args.scenario}")
    print(f"Data: {args.data_dir}")
    print(f"Engine: {args.engine}")
    print()

    static_data = load_static_data(args.data_dir)

    def _on_progress(event):
        if event.type == 'phase':
            print(f"  {event.phase}")
        elif event.type == 'info':
            print(f"  {event.info}")
        elif event.type == 'error':
            print(f"  ERROR: {event.error}")

    results = run_skill_evaluation(
        scenario, static_data, args.engine,
        settings=settings,
        on_progress=_on_progress,
    )

    if 'error' in results:
        print(f"\nERROR: {results['error']}")
        sys.exit(1)

    print("\n" + format_results_table(results['results'], scenario.confidence_interval))
    print("\n" + summarize_run(results))

    # Export
    stem = Path(args.scenario).stem
    json_out = args.output or f"results_{stem}.json"
    export_results(results['results'], json_out)
    meta_out = Path(json_out).with_suffix('.meta.json')
    with open(meta_out, 'w') as f:
        json.dump({
            'settings': results['settings'],
            'errors': results['errors'],
            'notices': results['notices'],
        }, f, indent=2)
    print(f"\n  Results: {json_out}")
    print(f"  Run metadata: {meta_out}")


if __name__ == '__main__':
    main()
