"""
Command Line Interface for D2K.
"""
import logging
import os
import sys
import click
from ..exceptions import ConfigError
from ..MODELS.conversion_config import ConversionConfig
from ..RUNNERS.conversion_runner import ConversionRunner


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    D2K - Docker Compose to Kubernetes converter.

    Classifies compose services and generates Kubernetes manifests for them.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)


def _load_config(path):
    if not path:
        return ConversionConfig()
    try:
        return ConversionConfig.from_file(path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)


def _require_file(file):
    if not os.path.exists(file):
        click.echo(f"Error: {file} not found.", err=True)
        sys.exit(1)


@cli.command()
@click.option('--file', '-f', default='docker-compose.yml', help='Compose file path')
def analyze(file):
    """Show service roles, detected patterns and recommendations."""
    _require_file(file)
    result = ConversionRunner().analyze(file)
    if result.aborted:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    click.echo(f"{'SERVICE':20} {'ROLE':15} {'IMAGE'}")
    click.echo("-" * 50)
    for svc in result.model.services:
        click.echo(f"{svc.name:20} {svc.role.value:15} {svc.image}")

    click.echo("\nPatterns:")
    if not result.patterns:
        click.echo("  none")
    for pattern in result.patterns:
        click.echo(f"  {pattern.pattern_type.value} ({pattern.confidence:.2f}): {', '.join(pattern.services)}")

    click.echo(f"\nComplexity score: {result.report.complexity_score}")
    if result.report.recommendations:
        click.echo("Recommendations:")
        for recommendation in result.report.recommendations:
            click.echo(f"  - {recommendation}")


@cli.command()
@click.option('--file', '-f', default='docker-compose.yml', help='Compose file path')
@click.option('--out', '-o', default=None, help='Output directory')
@click.option('--production', is_flag=True, help='Apply production patterns')
@click.option('--config', 'config_path', default=None, help='Conversion settings (YAML)')
def convert(file, out, production, config_path):
    """Convert the compose file to Kubernetes manifests."""
    _require_file(file)
    config = _load_config(config_path)
    runner = ConversionRunner(config)

    result = runner.run(file, production=production or config.production)
    if result.aborted:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    output_dir = runner.save(result, out)
    for failure in result.manifests.failures:
        click.echo(f"Warning: {failure.message}", err=True)
    click.echo(f"Wrote {result.succeeded} of {result.attempted} manifests to {output_dir}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
