"""命令执行命令"""

import asyncio
import logging

import click

from pyoctopus.config.settings import OctopusSettings, apply_config_defaults
from pyoctopus.core.errors import ConfigError, ResolutionError
from pyoctopus.core.octopus import Octopus
from pyoctopus.core.remote import Action, CommandRunner
from pyoctopus.core.ssh import SSHTransport
from pyoctopus.ui.formatter import OUTPUT_FORMATS, ResultFormatter

logger = logging.getLogger(__name__)

# 进程退出码只能是 0-255
MAX_EXIT_CODE = 255

output_option = click.option(
    "--output",
    "-o",
    type=click.Choice(OUTPUT_FORMATS),
    default="default",
    show_default=True,
    help="output format",
)


@click.command()
@click.argument("command")
@output_option
@click.pass_context
def run_command(ctx, command, output):
    """Run the given command on remote hosts.

    The command must be quoted to use pipes on the remote hosts; otherwise the
    pipe ends the pyoctopus command.
    """
    _apply_config(ctx)
    logger.info("running command: %s", command)

    num_host_errors = _dispatch(ctx, CommandRunner(command), ctx.params["output"])
    ctx.exit(exit_code(num_host_errors))


def exit_code(num_host_errors: int) -> int:
    return min(num_host_errors, MAX_EXIT_CODE)


def _apply_config(ctx: click.Context):
    try:
        apply_config_defaults(ctx, ctx.obj.get("config", {}))
    except ConfigError as e:
        raise click.UsageError(str(e), ctx=ctx)


def _build_transport(settings: OctopusSettings) -> SSHTransport:
    try:
        return SSHTransport(
            user=settings.user,
            port=settings.port,
            identity_files=[settings.identity_file],
            sftp_options=settings.sftp_options,
        )
    except ConfigError as e:
        raise click.ClickException(f"could not add identity file: {e}")


def _dispatch(ctx: click.Context, action: Action, output_format: str) -> int:
    """在选定主机组上执行动作，返回出错的主机数"""

    settings: OctopusSettings = ctx.obj["settings"]
    if not settings.host_groups:
        raise click.UsageError(
            "Required value 'host-groups' was not set in the config or in commandline",
            ctx=ctx,
        )

    formatter = ResultFormatter(output_format)
    octopus = Octopus(
        _build_transport(settings),
        settings.host_groups,
        settings.groups_file,
        max_hosts=settings.max_hosts,
        reporter=formatter,
    )

    try:
        num_host_errors = asyncio.run(octopus.do(action))
    except ResolutionError as e:
        raise click.ClickException(str(e))

    formatter.finish()
    logger.info("%d of %d host(s) reported errors", num_host_errors, len(octopus.results))
    return num_host_errors
