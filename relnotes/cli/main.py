"""Main CLI entry point for relnotes."""

import json
import logging
import sys

import click
from pydantic import ValidationError

from .. import __version__
from ..config import get_config, create_sample_config, Config
from ..gitlab import GitLabClient
from .changelog import changelog
from .bump import bump


LOG_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    # python-gitlab and urllib3 are chatty at DEBUG
    for name in ('urllib3', 'gitlab'):
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--gitlab-host', help='GitLab host URL (can also be set per command)')
@click.option('--gitlab-token', help='GitLab API token (can also be set per command)')
@click.option('--config-file', '-c', help='Path to JSON configuration file')
@click.version_option(version=__version__, prog_name="relnotes")
@click.pass_context
def cli(ctx, debug, gitlab_host, gitlab_token, config_file):
    """relnotes - release notes and version bumps from GitLab merge requests."""

    configure_logging(debug)

    try:
        base_config = get_config(config_file)
    except ValidationError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj.update(
        base_config=base_config,
        gitlab_host=gitlab_host,
        gitlab_token=gitlab_token,
        logger=logging.getLogger('relnotes'),
    )


def create_client_for_project(ctx, project, gitlab_host=None, gitlab_token=None, **overrides):
    """Create GitLab client for a specific project with configuration precedence."""
    base_config = ctx.obj['base_config']
    logger = ctx.obj['logger']

    settings = base_config.model_dump()
    settings.update(
        gitlab_host=gitlab_host or ctx.obj['gitlab_host'] or base_config.gitlab_host,
        gitlab_token=gitlab_token or ctx.obj['gitlab_token'] or base_config.gitlab_token,
        project=project or base_config.project,
    )
    settings.update({k: v for k, v in overrides.items() if v is not None})
    config = Config(**settings)

    if not config.gitlab_token:
        click.echo("Error: GitLab token is required. Set RELNOTES_GITLAB_TOKEN, use --gitlab-token, or config file", err=True)
        sys.exit(1)

    if not config.project:
        click.echo("Error: Project is required. Use --project or config file", err=True)
        sys.exit(1)

    return GitLabClient(config, logger), config


@cli.command()
@click.option('--path', '-p', default='relnotes.json', help='Path for the config file')
def init_config(path):
    """Create a sample configuration file."""
    try:
        create_sample_config(path)
    except OSError as e:
        click.echo(f"Error creating config file: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def labels(ctx):
    """Show the label table in effect, defaults merged with the config."""
    resolved = ctx.obj['base_config'].resolved_labels()
    data = {
        key: [definition.model_dump(exclude_none=True) for definition in definitions]
        for key, definitions in resolved.items()
    }
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@cli.command()
def version():
    """Show version information."""
    click.echo(f"relnotes version {__version__}")


cli.add_command(changelog)
cli.add_command(bump)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == '__main__':
    main()
