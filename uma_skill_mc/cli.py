"""
Command-line interface for the skill benefit estimator.
"""

import click
import logging
from dataclasses import replace

from .config import load_scenario_from_json
from .data import load_static_data
from .diagnostics import export_results, format_results_table, summarize_run
from .pipeline import run_skill_evaluation
from .production import build_production_config, save_production_config
from .profiles import PROFILE_NAMES, get_profile, apply_profile_overrides, load_profile_from_json
from .simulation.worker import resolve_engine
from .types import RunnerSettings


@click.command()
@click.argument('scenario_path', type=click.Path(exists=True))
@click.option(
    '--data-dir', '-d',
    type=click.Path(exists=True, file_okay=False),
    required=True,
    help='Directory with skill_meta.json, skillnames.json, skill_data.json, course_data.json'
)
@click.option(
    '--engine', '-e',
    required=True,
    help="Race engine as an import path 'package.module:function'"
)
@click.option(
    '--profile', '-p',
    type=click.Choice(PROFILE_NAMES),
    default='standard',
    help='Run profile (default: standard)'
)
@click.option(
    '--profile-file',
    type=click.Path(exists=True),
    help='Custom profile JSON (overrides --profile)'
)
@click.option(
    '--budget', '-b',
    type=int,
    multiple=True,
    help='Sample budget per pass; repeat for several passes (overrides profile)'
)
@click.option(
    '--concurrency', '-j',
    type=int,
    help='Max worker processes (default: CPU count)'
)
@click.option(
    '--timeout',
    type=float,
    help='Per-skill worker timeout in seconds'
)
@click.option(
    '--seed',
    type=int,
    help='Seed for combo shuffling and engine seeds in random mode'
)
@click.option(
    '--deterministic/--random',
    default=None,
    help='Force deterministic or random engine mode (default: from scenario)'
)
@click.option(
    '--skill', '-s', 'skills',
    multiple=True,
    help='Only evaluate this skill; repeatable'
)
@click.option(
    '--top-n',
    type=int,
    help='Only print the top N skills'
)
@click.option(
    '--output', '-o',
    type=click.Path(),
    help='Write results to .csv or .json'
)
@click.option(
    '--save-config',
    type=click.Path(dir_okay=False),
    help='Also save the resolved runner settings as a production config for run.py'
)
@click.option(
    '--json-events',
    is_flag=True,
    help='Print progress events as JSON lines instead of the results table'
)
@click.option(
    '--verbose', '-v',
    is_flag=True,
    help='Verbose logging'
)
def main(
    scenario_path,
    data_dir,
    engine,
    profile,
    profile_file,
    budget,
    concurrency,
    timeout,
    seed,
    deterministic,
    skills,
    top_n,
    output,
    save_config,
    json_events,
    verbose,
):
    """
    Estimate the benefit of each candidate skill in a scenario.

    SCENARIO_PATH: Path to the scenario JSON file
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Validate numeric parameters
    if any(b <= 0 for b in budget):
        raise click.BadParameter("budget must be a positive integer", param_hint="'--budget'")
    if concurrency is not None and concurrency <= 0:
        raise click.BadParameter("concurrency must be a positive integer", param_hint="'--concurrency'")
    if timeout is not None and timeout <= 0:
        raise click.BadParameter("timeout must be positive", param_hint="'--timeout'")
    if top_n is not None and top_n <= 0:
        raise click.BadParameter("top-n must be a positive integer", param_hint="'--top-n'")

    try:
        resolve_engine(engine)
    except (ImportError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint="'--engine'")

    # Build runner settings
    base = load_profile_from_json(profile_file) if profile_file else get_profile(profile)
    kwargs = apply_profile_overrides(base, {
        'pass_budgets': list(budget) if budget else None,
        'concurrency': concurrency,
        'timeout_s': timeout,
        'seed': seed,
    })
    settings = RunnerSettings.from_dict(kwargs)

    if save_config:
        config = build_production_config(settings, source_profile=profile_file or profile)
        save_production_config(config, save_config)
        if not json_events:
            click.echo(f"Production config saved to {save_config}")

    scenario = load_scenario_from_json(scenario_path)
    if deterministic is not None:
        scenario = replace(scenario, deterministic=deterministic)
    static_data = load_static_data(data_dir)

    if not json_events:
        click.echo("Running skill evaluation...")
        click.echo(f"  Scenario: {scenario_path}")
        click.echo(f"  Passes: {', '.join(str(b) for b in settings.pass_budgets)}")
        click.echo(f"  Mode: {'deterministic' if scenario.deterministic else 'random'}")
        if skills:
            click.echo(f"  Skills: {', '.join(skills)}")

    def _on_progress(event):
        if json_events:
            click.echo(event.to_json())
        elif event.type == 'phase':
            click.echo(f"  {event.phase}")
        elif event.type == 'info':
            click.echo(f"  {event.info}")
        elif event.type == 'error':
            click.echo(f"  Error: {event.error}", err=True)

    summary = run_skill_evaluation(
        scenario,
        static_data,
        engine,
        settings=settings,
        skill_filter=list(skills) or None,
        on_progress=_on_progress,
    )

    if 'error' in summary:
        if not json_events:
            click.echo(f"Error: {summary['error']}", err=True)
        return

    results = summary['results']

    if not json_events:
        click.echo("\n" + format_results_table(results, scenario.confidence_interval, top_n=top_n))
        click.echo("\n" + summarize_run(summary))

    if output:
        export_results(results, output)
        if not json_events:
            click.echo(f"\nResults saved to {output}")


if __name__ == '__main__':
    main()
