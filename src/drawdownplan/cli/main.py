"""CLI entry point for drawdownplan."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from drawdownplan.analytics.metrics import summarize
from drawdownplan.config.defaults import default_config
from drawdownplan.config.schema import EngineConfig, MarketObservation
from drawdownplan.core.engine import evaluate_period, simulate_periods
from drawdownplan.io.serialize import (
    dump_result,
    dump_state,
    load_config,
    load_period_inputs,
    load_periods,
    load_state,
)
from drawdownplan.market.classifier import classify

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"


def setup_logging(verbose: bool) -> None:
    """Configure root logging for CLI runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )


def _resolve_config(config_path: Path | None) -> EngineConfig:
    if config_path is None:
        return default_config()
    return load_config(config_path.read_text())


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to engine config JSON. Uses defaults if not provided.",
)


@click.group()
@click.version_option(package_name="drawdownplan")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """drawdownplan: retirement drawdown decision engine."""
    setup_logging(verbose)


@cli.command("classify")
@click.argument("observation_path", type=click.Path(exists=True, path_type=Path))
@config_option
def classify_command(observation_path: Path, config_path: Path | None) -> None:
    """Classify the market from an observation JSON file."""
    config = _resolve_config(config_path)
    observation = MarketObservation.model_validate_json(observation_path.read_text())
    assessment = classify(observation, config)

    click.echo(f"Regime: {assessment.regime} (runway bucket: {assessment.runway_regime})")
    click.echo(f"Gap to high: {assessment.ath_gap_pct:.1f}%")
    click.echo(f"1-year performance: {assessment.perf_1y_pct:+.1f}%")
    click.echo(f"Scenario: {assessment.scenario_text}")


@cli.command()
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to period inputs JSON.",
)
@click.option(
    "--state",
    "state_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Controller state from the previous period.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to write the full period result JSON.",
)
@click.option(
    "--state-out",
    "state_out_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to write the new controller state JSON.",
)
@config_option
def period(
    input_path: Path,
    state_path: Path | None,
    output_path: Path | None,
    state_out_path: Path | None,
    config_path: Path | None,
) -> None:
    """Evaluate a single period."""
    config = _resolve_config(config_path)
    inputs = load_period_inputs(input_path.read_text())
    prior_state = load_state(state_path.read_text()) if state_path is not None else None

    result = evaluate_period(inputs, prior_state, config)
    spending = result.spending
    action = result.action

    click.echo(f"Regime: {result.assessment.regime}")
    click.echo(f"Monthly withdrawal: {spending.monthly_withdrawal:,.0f}")
    click.echo(f"Flex rate: {spending.flex_rate:.1f}% ({spending.cut_source})")
    if spending.alarm_active:
        click.echo("ALARM active")
    click.echo(f"Target liquidity: {result.target_liquidity:,.0f}")
    click.echo(f"Action: {action.title}")
    for flow in action.sources:
        click.echo(f"  sell {flow.label}: {flow.amount:,.0f}")
    for flow in action.uses:
        click.echo(f"  to {flow.label}: {flow.amount:,.0f}")
    if action.sale is not None:
        click.echo(f"  tax: {action.sale.total_tax:,.0f}")

    if output_path is not None:
        output_path.write_text(dump_result(result))
        click.echo(f"\nResult written to {output_path}")
    if state_out_path is not None:
        state_out_path.write_text(dump_state(result.new_state))
        click.echo(f"State written to {state_out_path}")


@cli.command()
@click.argument("periods_path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to write summary metrics JSON.",
)
@config_option
def simulate(periods_path: Path, output_path: Path | None, config_path: Path | None) -> None:
    """Run a JSON array of periods through the engine in order."""
    config = _resolve_config(config_path)
    periods = load_periods(periods_path.read_text())

    click.echo(f"Evaluating {len(periods)} periods")
    result = simulate_periods(periods, config)
    metrics = summarize(result)

    click.echo(f"Regimes: {', '.join(result.regimes)}")
    click.echo(f"Final flex rate: {metrics.final_flex_rate:.1f}%")
    click.echo(f"Minimum flex rate: {metrics.min_flex_rate:.1f}%")
    click.echo(
        f"Alarm periods: {metrics.alarm_periods} "
        f"(longest streak {metrics.longest_alarm_streak})"
    )
    click.echo(f"Total withdrawals: {metrics.total_withdrawals:,.0f}")
    click.echo(f"Total tax: {metrics.total_tax:,.0f}")

    if output_path is not None:
        output_path.write_text(dump_result(metrics))
        click.echo(f"\nMetrics written to {output_path}")


if __name__ == "__main__":
    cli()
