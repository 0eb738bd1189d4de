"""输出格式化模块"""

import json
from typing import List, Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule

from ..core.models import Result

BANNER_RULE = "~" * 40
OUTPUT_FORMATS = ["default", "rich", "json", "yaml"]


class ResultFormatter:
    """主机结果格式化器

    default/rich 格式在每个结果返回时立即输出；json/yaml 格式收集所有结果，
    在 finish() 时一次性输出。
    """

    def __init__(self, format_type: str = "default", console: Optional[Console] = None):
        self.format_type = format_type.lower()
        if self.format_type not in OUTPUT_FORMATS:
            raise ValueError(f"unknown output format: {format_type}")
        self.console = console or Console()
        self.err_console = Console(stderr=True)
        self.results: List[Result] = []

    def __call__(self, result: Result):
        self.report(result)

    def report(self, result: Result):
        self.results.append(result)
        if self.format_type == "default":
            self._print_default(result)
        elif self.format_type == "rich":
            self._print_rich(result)

    def finish(self):
        if self.format_type == "json":
            click.echo(self.format_json(self.results))
        elif self.format_type == "yaml":
            click.echo(self.format_yaml(self.results))

    def format_json(self, results: List[Result]) -> str:
        return json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False)

    def format_yaml(self, results: List[Result]) -> str:
        return yaml.safe_dump(
            [r.to_dict() for r in results], indent=2, allow_unicode=True, sort_keys=False
        )

    def _print_default(self, result: Result):
        """主机名横幅，然后是 stdout；stderr 和错误信息输出到标准错误"""
        click.echo(BANNER_RULE)
        click.echo(f" {result.hostname}")
        click.echo(f"{BANNER_RULE}\n")

        stdout = result.stdout.rstrip("\n")
        if stdout:
            click.echo(f"{stdout}\n")

        stderr = result.stderr.rstrip("\n")
        if stderr:
            click.echo(f"Stderr:\n\n{stderr}\n", err=True)

        if result.error is not None:
            click.echo(f"Error: {result.error}\n", err=True)

    def _print_rich(self, result: Result):
        style = "red" if result.failed else "green"
        self.console.print(Rule(f"[bold]{escape(result.hostname)}[/bold]", style=style))

        stdout = result.stdout.rstrip("\n")
        if stdout:
            self.console.print(stdout, markup=False, highlight=False)

        stderr = result.stderr.rstrip("\n")
        if stderr:
            self.err_console.print("[bold red]Stderr:[/bold red]")
            self.err_console.print(stderr, style="red", markup=False, highlight=False)

        if result.error is not None:
            self.err_console.print(
                f"[bold red]Error:[/bold red] {escape(str(result.error))}", highlight=False
            )
