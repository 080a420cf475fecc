from dataclasses import dataclass, field

from suitewatch.analyzer.dependency_map.dependency_types import DependencySet, GraphError
from suitewatch.schema.schema import TestSuite


def pluralized_word(singular: str, plural: str, count: int) -> str:
    return singular if count == 1 else plural


@dataclass(frozen=True)
class WatchedSuite:
    suite: TestSuite
    dependencies: DependencySet
    changed_packages: frozenset[str] = frozenset()

    @property
    def path(self) -> str:
        return self.suite.path

    def description(self) -> str:
        num_deps = self.dependencies.dependency_count
        return f"{self.suite.path} [{num_deps} {pluralized_word('dependency', 'dependencies', num_deps)}]"


@dataclass(frozen=True)
class Delta:
    """1回の比較結果(新規・変更・削除されたスイートとエラー)"""

    new_suites: tuple[WatchedSuite, ...] = ()
    removed_suites: tuple[TestSuite, ...] = ()
    modified_packages: tuple[str, ...] = ()
    errors: dict[TestSuite, GraphError] = field(default_factory=dict)
    # errorsのうち、初めて出たかメッセージが変わったもの(表示対象)
    new_errors: dict[TestSuite, GraphError] = field(default_factory=dict)
    modified: tuple[WatchedSuite, ...] = ()

    def modified_suites(self) -> list[WatchedSuite]:
        """自身または依存先のパッケージが変わったスイート(探索順)"""
        return list(self.modified)

    def suites_to_run(self) -> list[TestSuite]:
        """新規スイート、変更スイートの順に並べた実行リスト(重複なし)"""
        suites = {}
        for watched in (*self.new_suites, *self.modified):
            suites.setdefault(watched.path, watched.suite)
        return list(suites.values())

    def is_empty(self) -> bool:
        return not self.new_suites and not self.modified
