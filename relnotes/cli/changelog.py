"""Changelog command implementation."""

import sys

import click

from ..releasenote import LogSourceError, Release


@click.command()
@click.option('--project', '-p', help='GitLab project path or ID')
@click.option('--from', 'from_ref', required=True, help='Start of the range (tag, branch or commit)')
@click.option('--to', 'to_ref', default='HEAD', show_default=True, help='End of the range')
@click.option('--gitlab-host', help='GitLab host URL (overrides global setting)')
@click.option('--gitlab-token', help='GitLab API token (overrides global setting)')
@click.option('--output', '-o', help='Write the markdown to a file instead of stdout')
@click.pass_context
def changelog(ctx, project, from_ref, to_ref, gitlab_host, gitlab_token, output):
    """Generate release notes for a range of commits."""

    # Import here to avoid circular dependency
    from .main import create_client_for_project

    client, config = create_client_for_project(ctx, project, gitlab_host, gitlab_token)
    logger = ctx.obj['logger']

    logger.info(f"Generating release notes for project: {config.project}, range: {from_ref}..{to_ref}")

    try:
        document = Release(client, config, logger=logger).generate_release_notes(from_ref, to_ref)
    except LogSourceError as e:
        click.echo(f"Error reading commits: {e}", err=True)
        sys.exit(1)

    if not document.text.strip():
        click.echo("No release notes generated (no commits in range)")
        return

    if output:
        try:
            with open(output, 'w', encoding='utf-8') as f:
                f.write(document.text + "\n")
        except OSError as e:
            click.echo(f"Error writing to file {output}: {e}", err=True)
            sys.exit(1)
        click.echo(f"Release notes saved to: {output}")
    else:
        click.echo(document.text)
