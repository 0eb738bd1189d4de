import ssl
import sys

import asyncssh
import click
from rich import box
from rich.console import Console
from rich.table import Table

from pyoctopus import __version__


def print_version():
    click.echo(f" pyoctopus version {__version__}")


def print_version_by_rich():
    """使用 Rich 输出版本及运行环境信息"""
    console = Console()

    table = Table(show_header=False, box=box.ROUNDED, padding=(0, 1))
    table.add_column("Key", style="cyan bold", width=20)
    table.add_column("Value", style="white")

    table.add_row("Program", "pyoctopus", style="on blue")
    table.add_row("Version", __version__, style="bright_green")
    table.add_row("Python", " ".join(sys.version.split("\n")))
    table.add_row("Platform", sys.platform)
    table.add_row("asyncssh", asyncssh.__version__)
    table.add_row("OpenSSL", ssl.OPENSSL_VERSION)

    console.print(table)


@click.command()
@click.option("--detail", "-d", is_flag=True, help="show runtime environment details")
def version_command(detail):
    """Print pyoctopus's version information."""
    if detail:
        print_version_by_rich()
    else:
        print_version()
