from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from suitewatch import settings
from suitewatch.analyzer.dependency_map.dependency_types import GraphError
from suitewatch.schema.schema import RunConfig, TestSuite
from suitewatch.watch.delta import Delta, pluralized_word

# 通常のConsoleオブジェクト
console = Console(width=120)
# ファイル出力用のConsoleオブジェクト(設定があるときだけ)
file_console = None
if settings.rich_log_file:
    file_console = Console(width=300, file=open(settings.rich_log_file, "a", encoding="utf-8"))  # noqa: SIM115


def console_print_all(*args, **kwargs):
    console.print(*args, **kwargs)
    if file_console is not None:
        file_console.print(*args, **kwargs)


def prepare_table_common(title: str, title_style: str = "bold") -> Table:
    table = Table(title=title, title_style=title_style)
    table.add_column("suite", style="cyan", no_wrap=True)

    # ローカルマシンに設定されているタイムゾーンを取得
    local_tz = datetime.now().astimezone().tzinfo
    table.caption = f"{datetime.now(tz=local_tz).strftime('%Y-%m-%d %H:%M:%S')}"
    table.caption_justify = "left"
    return table


def display_identified(num_suites: int, depth: int):
    console_print_all(
        f"Identified {num_suites} test {pluralized_word('suite', 'suites', num_suites)}.  "
        f"Locating dependencies to a depth of {depth} (this may take a while)..."
    )


def display_watching(delta: Delta):
    """最初の探索で監視対象になったスイートを表示します。"""
    num_suites = len(delta.new_suites)
    table = prepare_table_common(f"Watching {num_suites} {pluralized_word('suite', 'suites', num_suites)}")
    for watched in delta.new_suites:
        table.add_row(escape(watched.description()))
    console_print_all(Panel(table, border_style="green"))
    display_errors(delta.new_errors)


def display_errors(errors: dict[TestSuite, GraphError]):
    for suite, err in errors.items():
        console_print_all(f"[red]Failed to watch {escape(suite.package_name or suite.path)}: {escape(str(err))}[/red]")


def display_delta(delta: Delta):
    """tickで検出した新規・変更・削除スイートを表示します。"""
    if delta.new_suites:
        num_new = len(delta.new_suites)
        console_print_all(f"[green]Detected {num_new} new {pluralized_word('suite', 'suites', num_new)}:[/green]")
        for watched in delta.new_suites:
            console_print_all(f"  {escape(watched.description())}")

    modified_suites = delta.modified_suites()
    if modified_suites:
        console_print_all("[green]Detected changes in:[/green]")
        for package in delta.modified_packages:
            console_print_all(f"  {escape(package)}")
        num_modified = len(modified_suites)
        console_print_all(
            f"[green]Will run {num_modified} {pluralized_word('suite', 'suites', num_modified)}:[/green]"
        )
        for watched in modified_suites:
            console_print_all(f"  {escape(watched.description())}")
        console_print_all("")

    if delta.removed_suites:
        num_removed = len(delta.removed_suites)
        console_print_all(
            f"[yellow]Stopped watching {num_removed} removed {pluralized_word('suite', 'suites', num_removed)}:[/yellow]"
        )
        for suite in delta.removed_suites:
            console_print_all(f"  {escape(suite.description())}")

    display_errors(delta.new_errors)


def display_run_config(run_config: RunConfig, num_suites: int):
    mode = "succinct" if run_config.succinct else "verbose" if run_config.verbose else "normal"
    console_print_all(
        f"[dim]Running {num_suites} {pluralized_word('suite', 'suites', num_suites)} "
        f"with random seed {run_config.random_seed} ({mode})[/dim]"
    )


def display_compilation_error(suite: TestSuite):
    message = escape(suite.compilation_error or "")
    console_print_all(Panel(message, title=escape(f"Failed to compile {suite.path}"), style="red"))


def display_cycle_done(*, passed: bool):
    color = "green" if passed else "red"
    console_print_all(f"\n[{color}]Done.  Resuming watch...[/{color}]")
