from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


class GraphError(Exception):
    """スイートの依存グラフが作れなかった(パッケージが見つからない・解析できない)"""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class FileStamp:
    path: str
    mtime_ns: int
    size: int


@dataclass(frozen=True)
class DependencySet:
    """スイートから深さmax_depthまでに到達できるパッケージとファイルの集合

    depths: パッケージ -> スイートからのimport距離(スイート自身は0)
    files: パッケージ -> 除外パターンを適用済みのファイル(ソート済み)
    """

    root: str
    depths: Mapping[str, int] = field(default_factory=dict)
    files: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "depths", MappingProxyType(dict(self.depths)))
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    @property
    def packages(self) -> list[str]:
        # 距離順、同じ距離ならパス順
        return sorted(self.depths, key=lambda package: (self.depths[package], package))

    @property
    def all_files(self) -> frozenset[str]:
        return frozenset(path for paths in self.files.values() for path in paths)

    @property
    def dependency_count(self) -> int:
        return len(self.depths) - 1 if self.root in self.depths else len(self.depths)
