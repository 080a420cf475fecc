import os
import re
from collections import deque

import networkx as nx

from suitewatch.analyzer.dependency_map.dependency_types import DependencySet, GraphError
from suitewatch.analyzer.dependency_map.signature import PackageSignature, stamp_files
from suitewatch.schema.schema import TestSuite
from suitewatch.utils.log_util import log


class DependencyManagerBase:
    """パッケージ間のimport関係をグラフで持ち、スイートの依存集合を求める

    ノード: パッケージディレクトリの絶対パス(属性 signature に解析時のファイルスタンプ)
    エッジ: importする側 -> importされる側
    """

    def __init__(self, exclusion_pattern: re.Pattern | str | None = None):
        if isinstance(exclusion_pattern, str):
            exclusion_pattern = re.compile(exclusion_pattern)
        self.exclusion_pattern = exclusion_pattern
        self.graph = nx.DiGraph()

    def dependencies(self, suite: TestSuite, max_depth: int) -> DependencySet:
        """スイートのパッケージから幅優先でimportを辿り、max_depthまでのパッケージを集める"""
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0 (got {max_depth})")

        root = os.path.abspath(suite.path)
        depths = {root: 0}
        files = {}
        queue = deque([root])
        while queue:
            package = queue.popleft()
            files[package], package_signature = self._package_files(package)
            if depths[package] >= max_depth:
                # これ以上は展開しない(ファイルだけ取る)
                continue
            for imported in self._imported_packages(package, files[package], package_signature):
                if imported in depths:
                    # 循環・合流は一度だけ
                    continue
                depths[imported] = depths[package] + 1
                queue.append(imported)

        log("dependencies suite=%s depth=%d packages=%d", root, max_depth, len(depths))
        return DependencySet(root=root, depths=depths, files=files)

    def find_dependents(self, package: str) -> set[str]:
        """packageを直接・間接にimportしている既知のパッケージ"""
        try:
            return set(nx.ancestors(self.graph, package))
        except nx.NetworkXError:
            return set()

    def is_excluded(self, path: str) -> bool:
        return bool(self.exclusion_pattern and self.exclusion_pattern.search(path))

    def _package_files(self, package: str) -> tuple[tuple[str, ...], PackageSignature]:
        """パッケージ直下の(除外パターン適用済みの)ファイル一覧"""
        try:
            with os.scandir(package) as entries:
                paths = [entry.path for entry in entries if entry.is_file() and not self.is_excluded(entry.path)]
        except OSError as e:
            raise GraphError(f"cannot list package {package}: {e}", path=package) from e
        paths.sort()
        return tuple(paths), stamp_files(paths)

    def _imported_packages(
        self, package: str, paths: tuple[str, ...], package_signature: PackageSignature
    ) -> list[str]:
        """packageが直接importするパッケージ

        構文解析の結果(import文)はファイルが変わるまでグラフのノードにキャッシュする。
        解決先はimport先のディレクトリの有無で変わるため、毎回解決し直してエッジを張り直す。
        """
        node = self.graph.nodes[package] if package in self.graph else None
        if node is not None and node.get("signature") == package_signature:
            imports = node["imports"]
        else:
            imports = self._parse_imports(package, paths)
            self.graph.add_node(package, signature=package_signature, imports=imports)

        imported = self._resolve_imports(package, imports)
        imported.discard(package)

        self.graph.remove_edges_from(list(self.graph.out_edges(package)))
        for dst in imported:
            self.graph.add_edge(package, dst)
        return sorted(imported)

    def _parse_imports(self, package: str, paths: tuple[str, ...]) -> list:
        """パッケージのファイル群からimport文を取り出す(言語ごとに実装)"""
        raise NotImplementedError

    def _resolve_imports(self, package: str, imports: list) -> set[str]:
        """_parse_importsの結果をパッケージディレクトリに解決する(言語ごとに実装)"""
        raise NotImplementedError
