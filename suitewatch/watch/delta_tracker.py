import re
import sys
from collections.abc import Sequence

from tqdm import tqdm

from suitewatch.analyzer.dependency_map.dependency_manager_base import DependencyManagerBase
from suitewatch.analyzer.dependency_map.dependency_types import GraphError
from suitewatch.analyzer.dependency_map.python.dependency_manager_py import DependencyManagerPy
from suitewatch.analyzer.dependency_map.signature import PackageSignature, Signature
from suitewatch.schema.schema import TestSuite
from suitewatch.utils.log_util import log, log_progress, log_w
from suitewatch.watch.delta import Delta, WatchedSuite


class DeltaTracker:
    """スイートごとの変更検知状態を持ち、tickごとの差分(Delta)を返す

    状態(パッケージパス -> 最後に観測したSignature)はこのクラスだけが持つ。
    delta()は新規スイートを登録するだけで、変更されたスイートの記録は更新しない。
    記録の更新はmark_observed()(実行後)だけで行うため、実行されなかった変更は
    次のtickでも変更として検出される。
    """

    def __init__(
        self,
        max_depth: int,
        exclusion_pattern: re.Pattern | str,
        dependency_manager: DependencyManagerBase | None = None,
    ):
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0 (got {max_depth})")
        if isinstance(exclusion_pattern, str):
            exclusion_pattern = re.compile(exclusion_pattern)
        self._max_depth = max_depth
        self._exclusion_pattern = exclusion_pattern
        if dependency_manager is None:
            dependency_manager = DependencyManagerPy(exclusion_pattern)
        self._dependency_manager = dependency_manager
        self._signatures: dict[str, Signature] = {}
        self._suites: dict[str, TestSuite] = {}
        # 報告済みのGraphError(パッケージパス -> メッセージ)
        self._reported_errors: dict[str, str] = {}

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def exclusion_pattern(self) -> re.Pattern:
        return self._exclusion_pattern

    @property
    def tracked_packages(self) -> tuple[str, ...]:
        return tuple(self._signatures)

    def delta(
        self, suites: Sequence[TestSuite], *, show_progress: bool = False
    ) -> tuple[Delta, dict[TestSuite, GraphError]]:
        errors: dict[TestSuite, GraphError] = {}
        new_errors: dict[TestSuite, GraphError] = {}
        new_suites: list[WatchedSuite] = []
        modified: list[WatchedSuite] = []
        modified_packages: set[str] = set()
        seen: set[str] = set()
        # 同じtick内で共有パッケージのstatを1回にするためのキャッシュ
        signature_cache: dict[str, PackageSignature] = {}

        progress_bar = tqdm(suites, unit="suites", file=sys.stdout, desc="dependencies", disable=not show_progress)
        for suite in progress_bar:
            if suite.path in seen:
                continue
            seen.add(suite.path)

            try:
                dependencies = self._dependency_manager.dependencies(suite, self._max_depth)
            except GraphError as e:
                errors[suite] = e
                if self._reported_errors.get(suite.path) != str(e):
                    log_w("failed to compute dependencies of %s: %s", suite.path, e)
                    self._reported_errors[suite.path] = str(e)
                    new_errors[suite] = e
                continue
            self._reported_errors.pop(suite.path, None)
            signature = Signature.capture(dependencies, signature_cache)

            stored = self._signatures.get(suite.path)
            if stored is None:
                self._signatures[suite.path] = signature
                self._suites[suite.path] = suite
                new_suites.append(WatchedSuite(suite, dependencies))
                continue

            self._suites[suite.path] = suite
            changed = signature.changed_packages(stored)
            if changed:
                log("modified suite=%s changed=%s", suite.path, sorted(changed))
                modified.append(WatchedSuite(suite, dependencies, frozenset(changed)))
                modified_packages |= changed
        if show_progress:
            log_progress(progress_bar)
        progress_bar.close()
        for package in sorted(modified_packages):
            log("changed package=%s dependents=%s", package, sorted(self._dependency_manager.find_dependents(package)))

        removed_suites = self._forget_missing(seen)

        delta = Delta(
            new_suites=tuple(new_suites),
            removed_suites=tuple(removed_suites),
            modified_packages=tuple(sorted(modified_packages)),
            errors=errors,
            new_errors=new_errors,
            modified=tuple(modified),
        )
        return delta, errors

    def signature(self, suite: TestSuite) -> Signature:
        """ディスク上の現在のSignature(状態は更新しない)"""
        dependencies = self._dependency_manager.dependencies(suite, self._max_depth)
        return Signature.capture(dependencies)

    def mark_observed(self, suite: TestSuite, signature: Signature | None = None) -> None:
        """スイート自身のエントリだけを現在(または実行前に取得した)Signatureで更新する

        他のスイートのエントリには触れない。依存先パッケージの変更は、
        それを依存に持つ各スイートが自分で観測されるまで変更として残る。
        """
        if signature is None:
            signature = self.signature(suite)
        self._signatures[suite.path] = signature
        self._suites[suite.path] = suite
        log("mark_observed suite=%s", suite.path)

    def _forget_missing(self, seen: set[str]) -> list[TestSuite]:
        for path in list(self._reported_errors):
            if path not in seen:
                del self._reported_errors[path]
        removed = []
        for path in list(self._signatures):
            if path not in seen:
                del self._signatures[path]
                removed.append(self._suites.pop(path))
        return removed
