import click

from pyoctopus.core.errors import ResolutionError
from pyoctopus.core.groups import valid_host_groups


@click.command()
@click.pass_context
def host_groups_command(ctx):
    """Parse the host groups file, and report the available groups."""
    settings = ctx.obj["settings"]
    try:
        groups = valid_host_groups(settings.groups_file)
    except ResolutionError as e:
        raise click.ClickException(str(e))

    for group in groups:
        click.echo(group)
