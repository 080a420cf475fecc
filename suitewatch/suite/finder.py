import fnmatch
import os
import re
from collections.abc import Sequence

from suitewatch.schema.schema import TestSuite, WatchConfig
from suitewatch.utils.log_util import log, log_w

# テストファイルとみなすファイル名
TEST_FILE_PATTERNS = ["test_*.py", "*_test.py"]

# 探索しないディレクトリ名
IGNORE_DIR_NAMES = {"__pycache__", "site-packages", "node_modules", "venv", "build", "dist"}

RECURSIVE_SUFFIX = "..."


def is_test_file(file_name: str) -> bool:
    return any(fnmatch.fnmatch(file_name, pattern) for pattern in TEST_FILE_PATTERNS)


def is_suite_dir(dir_path: str) -> bool:
    try:
        with os.scandir(dir_path) as entries:
            return any(entry.is_file() and is_test_file(entry.name) for entry in entries)
    except OSError:
        return False


def find_suites(roots: Sequence[str], config: WatchConfig) -> list[TestSuite]:
    """テストスイート(テストファイルを含むディレクトリ)を探す

    "pkg/..." のように末尾が "..." のルートは再帰的に探索し、それ以外は
    そのディレクトリ自身だけを見る。ルート未指定ならカレントディレクトリ。
    戻り値はパス順(ディレクトリ構成が同じなら毎回同じ順序)。
    """
    skip_package = re.compile(config.skip_package) if config.skip_package else None
    suite_paths: set[str] = set()
    for root in roots or ["."]:
        recursive = root.endswith(RECURSIVE_SUFFIX)
        if recursive:
            root = root[: -len(RECURSIVE_SUFFIX)] or "."
        root = os.path.abspath(root)
        if not os.path.isdir(root):
            log_w("not a directory: %s", root)
            continue
        if recursive:
            suite_paths.update(_walk_suite_dirs(root))
        elif is_suite_dir(root):
            suite_paths.add(root)

    suites = []
    for path in sorted(suite_paths):
        if skip_package and skip_package.search(path):
            log("skip package %s", path)
            continue
        suites.append(TestSuite.from_path(path))
    log("find_suites roots=%s suites=%d", roots, len(suites))
    return suites


def _walk_suite_dirs(root: str) -> list[str]:
    found = []
    for dir_path, dir_names, file_names in os.walk(root):
        # 隠しディレクトリや仮想環境には入らない
        dir_names[:] = sorted(
            name
            for name in dir_names
            if not name.startswith(".")
            and name not in IGNORE_DIR_NAMES
            and not os.path.isfile(os.path.join(dir_path, name, "pyvenv.cfg"))
        )
        if any(is_test_file(file_name) for file_name in file_names):
            found.append(dir_path)
    return found
