"""
Command-line interface for the SMBO engine.

This module provides a CLI for running optimizations on the bundled
benchmark problems, generating initial designs for parameter spaces
described in JSON, and inspecting the package configuration.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click

from smbo import __version__
from smbo.core.config import configure_logging, settings
from smbo.core.control import MBOControl
from smbo.core.exceptions import SMBOError
from smbo.experimental_design.design import generate_design
from smbo.experimental_design.parameters import ParameterSpace
from smbo.models import SURROGATES, create_surrogate
from smbo.optimization.engine import mbo
from smbo.utils.sampling import SAMPLERS
from smbo.utils.test_functions import BENCHMARKS, get_benchmark

logger = logging.getLogger(__name__)


def _write_frame(frame, output: str) -> None:
    if Path(output).suffix.lower() == ".json":
        frame.reset_index().to_json(output, orient="records", indent=2, date_format="iso")
    else:
        frame.to_csv(output)


@click.group()
@click.version_option(version=__version__)
@click.option('--debug/--no-debug', default=False, help='Enable debug logging')
@click.option('--config', type=click.Path(exists=True), help='JSON file with settings overrides')
def main(debug: bool, config: Optional[str]) -> None:
    """
    SMBO: sequential model-based optimization of expensive black-box functions

    Optimizes over mixed and hierarchical parameter spaces with single- and
    multi-objective infill criteria and constant liar batch proposals.
    """
    if config:
        with open(config, 'r') as f:
            config_data = json.load(f)

        for key, value in config_data.items():
            if hasattr(settings, key):
                setattr(settings, key, value)

    if debug:
        settings.debug = True
    configure_logging()


@main.command()
@click.argument('benchmark', type=click.Choice(sorted(BENCHMARKS)))
@click.option('--iterations', '-n', default=10, show_default=True, help='Post-design iterations')
@click.option('--surrogate', type=click.Choice(sorted(SURROGATES)), default='rf', show_default=True)
@click.option('--infill', type=click.Choice(['mean', 'ei', 'cb', 'dib']), default=None,
              help='Infill criterion (default: ei, or dib for multi-objective problems)')
@click.option('--multicrit', type=click.Choice(['dib', 'parego']), default='dib', show_default=True)
@click.option('--propose-points', '-q', default=1, show_default=True, help='Points per iteration')
@click.option('--init-design-size', type=int, default=None, help='Initial design size')
@click.option('--workers', default=1, show_default=True, help='Worker threads for batch evaluation')
@click.option('--seed', type=int, default=None, help='Random seed')
@click.option('--output', '-o', type=click.Path(), help='Write the optimization path (.csv or .json)')
def run(
    benchmark: str,
    iterations: int,
    surrogate: str,
    infill: Optional[str],
    multicrit: str,
    propose_points: int,
    init_design_size: Optional[int],
    workers: int,
    seed: Optional[int],
    output: Optional[str],
) -> None:
    """Optimize one of the bundled benchmark problems."""
    problem = get_benchmark(benchmark)
    click.echo(f"Optimizing {problem.name}: {problem.description}")

    try:
        builder = (
            MBOControl.builder()
            .objectives(problem.n_objectives, minimize=problem.minimize)
            .termination(iterations=iterations)
            .init_design(size=init_design_size)
            .infill(criterion=infill)
            .multi_point(propose_points)
            .evaluation(n_workers=workers)
        )
        if problem.n_objectives > 1:
            builder.multi_objective(method=multicrit)
        if seed is not None:
            builder.seed(seed)
        control = builder.build()

        model = create_surrogate(surrogate, problem.parameter_space, random_state=seed)
        result = mbo(problem.objective_function, problem.parameter_space, model, control=control)
    except SMBOError as e:
        raise click.ClickException(str(e))

    summary = result.get_summary()
    click.echo(f"Finished: {summary['termination_reason']} after {summary['n_iterations']} iteration(s), "
               f"{summary['n_evaluations']} evaluation(s), {summary['execution_time']:.2f}s")
    if result.best is not None:
        click.echo(f"Best value: {result.best.value:.6g}")
        click.echo(f"Best configuration: {result.best.configuration}")
        if problem.optimum_value is not None:
            click.echo(f"Known optimum: {problem.optimum_value}")
    if result.pareto_front is not None:
        click.echo(f"Pareto front: {len(result.pareto_front)} point(s)")
        for evaluation in result.pareto_front:
            click.echo(f"  {evaluation.outcome}  {evaluation.configuration}")
    for error in result.errors:
        click.echo(f"Warning [{error.kind}] iteration {error.iteration}: {error.message}", err=True)

    if output:
        _write_frame(result.to_dataframe(), output)
        click.echo(f"Optimization path saved to {output}")


@main.command()
@click.argument('space_file', type=click.Path(exists=True))
@click.option('--size', '-n', default=10, show_default=True, help='Number of configurations')
@click.option('--method', type=click.Choice(sorted(SAMPLERS)), default=None,
              help='Sampling method (default from settings)')
@click.option('--seed', type=int, default=None, help='Random seed')
@click.option('--output', '-o', type=click.Path(), help='Write the design (.csv or .json)')
def design(space_file: str, size: int, method: Optional[str], seed: Optional[int], output: Optional[str]) -> None:
    """Generate an initial design for a parameter space described in JSON."""
    with open(space_file, 'r') as f:
        space_data = json.load(f)

    try:
        space = ParameterSpace.from_dict(space_data)
        configurations = generate_design(space, size, method=method, random_seed=seed)
    except SMBOError as e:
        raise click.ClickException(str(e))

    frame = space.to_frame(configurations)
    if output:
        _write_frame(frame, output)
        click.echo(f"Design with {len(frame)} configuration(s) saved to {output}")
    else:
        click.echo(frame.to_string())


@main.command()
def info() -> None:
    """Show package information."""
    from smbo import get_info

    info_data = get_info()

    click.echo("SMBO Engine Information")
    click.echo("=" * 40)
    for key, value in info_data.items():
        click.echo(f"{key.capitalize()}: {value}")

    click.echo("\nConfiguration:")
    click.echo(f"Debug mode: {settings.debug}")
    click.echo(f"Log level: {settings.log_level.value}")
    click.echo(f"Design method: {settings.design_method}")
    click.echo(f"Focus search: {settings.focus_search_points} points, "
               f"{settings.focus_search_maxit} rounds, {settings.focus_search_restarts} restarts")
    click.echo(f"Benchmarks: {', '.join(sorted(BENCHMARKS))}")
    click.echo(f"Surrogates: {', '.join(sorted(SURROGATES))}")


if __name__ == '__main__':
    main()
