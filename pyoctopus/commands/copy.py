"""文件复制命令"""

import logging

import click

from pyoctopus.commands.run import _apply_config, _dispatch, exit_code, output_option
from pyoctopus.core.copy import (
    DEFAULT_MAX_FILE_POINTERS,
    DEFAULT_MAX_WORKERS,
    FileCopier,
    FilePointerPool,
)
from pyoctopus.core.models import CopyFileOptions

logger = logging.getLogger(__name__)


@click.command()
@click.argument("paths", nargs=-1, required=True, metavar="LOCAL_SOURCE_PATHS... REMOTE_DEST_DIR")
@click.option("--recursive", "-r", is_flag=True, help="recurse into subdirectories and copy all files")
@click.option(
    "--max-workers",
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    type=click.IntRange(min=1),
    help="maximum number of files copied at once to each host",
)
@click.option(
    "--max-open-files",
    default=DEFAULT_MAX_FILE_POINTERS,
    show_default=True,
    type=click.IntRange(min=1),
    help="maximum number of local files open at once across all hosts",
)
@output_option
@click.pass_context
def copy_command(ctx, paths, recursive, max_workers, max_open_files, output):
    """Copy local files to a dir on remote hosts."""
    _apply_config(ctx)
    if len(paths) < 2:
        raise click.UsageError(
            "at least one local source path and a remote dest dir are required", ctx=ctx
        )

    local_sources, remote_dir = list(paths[:-1]), paths[-1]
    logger.info(
        "copying %d local sources %s to remote dir %s",
        len(local_sources),
        local_sources,
        remote_dir,
    )

    # 同一个文件句柄池由所有主机共享
    copier = FileCopier(
        local_sources,
        remote_dir,
        CopyFileOptions(recursive=ctx.params["recursive"]),
        file_pointers=FilePointerPool(ctx.params["max_open_files"]),
        max_workers=ctx.params["max_workers"],
    )
    num_host_errors = _dispatch(ctx, copier, ctx.params["output"])
    ctx.exit(exit_code(num_host_errors))
