"""主命令行接口"""

import logging

import click

from pyoctopus import __version__
from pyoctopus.commands.copy import copy_command
from pyoctopus.commands.host_groups import host_groups_command
from pyoctopus.commands.run import run_command
from pyoctopus.commands.version import version_command
from pyoctopus.config.settings import (
    DEFAULT_GROUPS_FILE,
    DEFAULT_IDENTITY_FILE,
    apply_config_defaults,
    load_config,
    settings_from_params,
)
from pyoctopus.core.errors import ConfigError
from pyoctopus.core.groups import valid_host_groups
from pyoctopus.core.octopus import DEFAULT_MAX_HOSTS
from pyoctopus.core.paths import abs_path
from pyoctopus.logger import setup_logging


def complete_host_groups(ctx, param, incomplete):
    """--host-groups 的补全，读取当前 --groups-file 中的主机组"""
    groups_file = ctx.params.get("groups_file") or DEFAULT_GROUPS_FILE
    try:
        groups = valid_host_groups(abs_path(groups_file))
    except Exception:
        return []
    return [g for g in groups if g.startswith(incomplete)]


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    help="config file to use instead of searching ./.octopus, ~/.octopus, /etc/octopus",
)
@click.option(
    "--groups-file",
    "-f",
    default=DEFAULT_GROUPS_FILE,
    show_default=True,
    help="file which defines groups of remote hosts available for execution",
)
@click.option(
    "--host-groups",
    "-g",
    multiple=True,
    shell_complete=complete_host_groups,
    help="comma-separated list of host groups; the action is run on each host in every group",
)
@click.option(
    "--identity-file",
    "-i",
    default=DEFAULT_IDENTITY_FILE,
    show_default=True,
    help="(ssh) file from which the identity (private key) for public key authentication is read",
)
@click.option(
    "--port",
    "-p",
    default=22,
    show_default=True,
    type=click.IntRange(1, 65535),
    help="(ssh) port on which to connect to hosts",
)
@click.option(
    "--user",
    "-u",
    default="root",
    show_default=True,
    help='user as which to connect to hosts (corresponds to ssh "-l" option)',
)
@click.option(
    "--verbose", "-v", is_flag=True, help="print additional information about octopus progress"
)
@click.option(
    "--max-hosts",
    default=DEFAULT_MAX_HOSTS,
    show_default=True,
    type=click.IntRange(min=0),
    help="maximum number of hosts to work on at once (0 means no limit)",
)
@click.option(
    "--sftp-block-size",
    default=32,
    show_default=True,
    type=click.IntRange(min=1),
    help="(sftp) size in KiB of each write request when copying files",
)
@click.option(
    "--sftp-requests",
    default=64,
    show_default=True,
    type=click.IntRange(min=1),
    help="(sftp) maximum concurrent write requests per copied file",
)
@click.pass_context
def cli(ctx, config_file, **options):
    """pyoctopus runs a command on multiple remote hosts in parallel

    Hosts are grouped together into "host groups" in a file inspired by pdsh's
    "genders" file. The host groups file is actually a Bash file with groups
    defined by variable definitions, so the same file may be used easily by
    both pyoctopus and by user-made scripts.

    WARNING: pyoctopus does not verify remote host keys (equivalent to ssh
    option StrictHostKeyChecking=no) and does not add entries to the known
    hosts file.
    """
    ctx.ensure_object(dict)
    try:
        config, config_path = load_config(config_file)
        apply_config_defaults(ctx, config)
    except ConfigError as e:
        raise click.UsageError(str(e), ctx=ctx)

    setup_logging(ctx.params["verbose"])
    logging.getLogger(__name__).info("running pyoctopus version %s", __version__)

    ctx.obj["config"] = config
    ctx.obj["settings"] = settings_from_params(ctx.params, config_path)


cli.add_command(run_command, name="run")
cli.add_command(copy_command, name="copy")
cli.add_command(host_groups_command, name="host-groups")
cli.add_command(version_command, name="version")


def main():
    """主入口函数"""
    cli()


if __name__ == "__main__":
    main()
