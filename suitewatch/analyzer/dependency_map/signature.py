import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from suitewatch.analyzer.dependency_map.dependency_types import DependencySet, FileStamp

PackageSignature = frozenset[FileStamp]


def stamp_file(path: str) -> FileStamp:
    try:
        stat = os.stat(path)
    except FileNotFoundError:
        # 一覧取得後に消えたファイル
        return FileStamp(path=path, mtime_ns=-1, size=-1)
    return FileStamp(path=path, mtime_ns=stat.st_mtime_ns, size=stat.st_size)


def stamp_files(paths: Iterable[str]) -> PackageSignature:
    return frozenset(stamp_file(path) for path in paths)


@dataclass(frozen=True)
class Signature:
    """DependencySetのディスク上の状態のスナップショット(変更不可、置き換えのみ)"""

    packages: Mapping[str, PackageSignature] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "packages", MappingProxyType(dict(self.packages)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return dict(self.packages) == dict(other.packages)

    def __hash__(self) -> int:
        return hash(frozenset(self.packages.items()))

    @classmethod
    def capture(cls, dependencies: DependencySet, cache: dict[str, PackageSignature] | None = None) -> "Signature":
        """依存集合の各パッケージについてファイルのスタンプを取る

        cacheを渡すと、同じtick内で複数スイートが共有するパッケージのstatを1回にできる。
        """
        packages = {}
        for package, paths in dependencies.files.items():
            if cache is not None and package in cache:
                packages[package] = cache[package]
                continue
            package_signature = stamp_files(paths)
            if cache is not None:
                cache[package] = package_signature
            packages[package] = package_signature
        return cls(packages=packages)

    def changed_packages(self, previous: "Signature") -> set[str]:
        """previousから追加・削除・変更されたパッケージ"""
        changed = set(self.packages.keys() ^ previous.packages.keys())
        for package, package_signature in self.packages.items():
            if package in previous.packages and previous.packages[package] != package_signature:
                changed.add(package)
        return changed
