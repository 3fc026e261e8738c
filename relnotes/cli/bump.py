"""Bump command implementation."""

import sys

import click

from ..releasenote import LogSourceError, NO_RELEASE, Release


@click.command()
@click.option('--project', '-p', help='GitLab project path or ID')
@click.option('--from', 'from_ref', required=True, help='Start of the range (tag, branch or commit)')
@click.option('--to', 'to_ref', default='HEAD', show_default=True, help='End of the range')
@click.option('--gitlab-host', help='GitLab host URL (overrides global setting)')
@click.option('--gitlab-token', help='GitLab API token (overrides global setting)')
@click.option('--only-publish-with-release-label', is_flag=True,
              help='Only release when a merge request carries the release label')
@click.pass_context
def bump(ctx, project, from_ref, to_ref, gitlab_host, gitlab_token, only_publish_with_release_label):
    """Print the version bump a range of commits warrants.

    Prints major, minor or patch, or "none" when no release should be made.
    """

    # Import here to avoid circular dependency
    from .main import create_client_for_project

    client, config = create_client_for_project(
        ctx, project, gitlab_host, gitlab_token,
        only_publish_with_release_label=True if only_publish_with_release_label else None,
    )
    logger = ctx.obj['logger']

    try:
        level = Release(client, config, logger=logger).get_semver_bump(from_ref, to_ref)
    except LogSourceError as e:
        click.echo(f"Error reading commits: {e}", err=True)
        sys.exit(1)

    click.echo(level if level != NO_RELEASE else "none")
