import argparse
import sys

from pydantic import ValidationError
from rich.markup import escape

import suitewatch
from suitewatch import settings
from suitewatch.schema.schema import WatchConfig
from suitewatch.suite.finder import find_suites
from suitewatch.suite.runner import SuiteRunner
from suitewatch.utils.log_util import log, log_e
from suitewatch.utils.rich_console import console_print_all
from suitewatch.watch.errors import NoSuitesFoundError
from suitewatch.watch.interrupt import InterruptSignal
from suitewatch.watch.spec_watcher import SpecWatcher

# argparseの引数名 -> WatchConfigの項目名
CONFIG_FIELDS = {
    "depth": "depth",
    "watch_exclude": "exclusion_pattern",
    "interval": "tick_interval",
    "skip_package": "skip_package",
    "seed": "random_seed",
    "succinct": "succinct",
    "verbose": "verbose",
}


def build_parser() -> argparse.ArgumentParser:
    # 既定値はNoneにしておき、ユーザが指定したかどうかを判定できるようにする
    parser = argparse.ArgumentParser(
        prog="suitewatch",
        description="Watch the passed in ROOTS and run their tests whenever changes occur.\n"
        "Any arguments after -- will be passed to pytest.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("roots", nargs="*", help="watched directories (append /... to search recursively)")
    parser.add_argument("-d", "--depth", type=int, default=None, help=f"dependency depth (default: {settings.depth})")
    parser.add_argument(
        "-w",
        "--watch-exclude",
        default=None,
        help="ignore files matching this regexp (default: {})".format(settings.watch_exclude.replace("%", "%%")),
    )
    parser.add_argument(
        "--interval", type=float, default=None, help=f"polling interval in seconds (default: {settings.tick_interval})"
    )
    parser.add_argument("--skip-package", default=None, help="skip suites whose path matches this regexp")
    parser.add_argument("--seed", type=int, default=None, help="pin the random seed")
    parser.add_argument("--succinct", action="store_true", default=None, help="succinct output")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="verbose output")
    parser.add_argument("--version", action="store_true", help="show version and exit")
    return parser


def split_pass_throughs(argv: list[str]) -> tuple[list[str], list[str]]:
    """ "--" より後ろはpytestにそのまま渡す"""
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1 :]
    return argv, []


def build_config(args: argparse.Namespace) -> WatchConfig:
    values = {}
    for arg_name, field_name in CONFIG_FIELDS.items():
        value = getattr(args, arg_name)
        if value is not None:
            values[field_name] = value
    return WatchConfig(**values, explicitly_set=frozenset(values))


def main(argv: list[str] | None = None) -> int:
    args, additional_args = split_pass_throughs(list(sys.argv[1:] if argv is None else argv))
    args = build_parser().parse_args(args)
    if args.version:
        print(f"suitewatch version {suitewatch.__version__}")
        return 0

    try:
        config = build_config(args)
    except ValidationError as e:
        log_e("invalid configuration: %s", e)
        console_print_all(f"[red]suitewatch detected configuration issues:[/red]\n{escape(str(e))}")
        return 2
    log("config=%s roots=%s additional_args=%s", config, args.roots, additional_args)

    interrupt = InterruptSignal()
    interrupt.install_signal_handlers()
    watcher = SpecWatcher(
        config,
        args.roots,
        additional_args,
        interrupt=interrupt,
        find_suites=find_suites,
        compile_and_run=SuiteRunner().compile_and_run,
    )
    try:
        watcher.watch_specs()
    except NoSuitesFoundError as e:
        log_e("%s", e)
        console_print_all(f"[red]{escape(str(e))}[/red]")
        return 1
    finally:
        interrupt.restore()
    return 0


if __name__ == "__main__":
    sys.exit(main())
