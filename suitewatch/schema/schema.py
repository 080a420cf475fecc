from __future__ import annotations

import os
import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from suitewatch import settings


class WatchState(str, Enum):
    IDLE = "idle"  # 次のtick待ち
    DISCOVERING = "discovering"  # スイート探索中
    CLASSIFYING = "classifying"  # 差分(Delta)の計算中
    RUNNING = "running"  # 影響のあるスイートを順に実行中
    STOPPED = "stopped"  # 終了(中断済み)

    def __str__(self):
        return self.value

    def __repr__(self) -> str:
        return self.value


class TestSuite(BaseModel):
    """テストスイート(=テストを含む1パッケージ)

    tickごとに探索し直すため、tick間の比較はpathで行う。
    """

    __test__ = False  # pytestに収集させない

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="パッケージディレクトリの絶対パス")
    package_name: str = Field(default="", description="表示用のパッケージ名")
    compilation_error: str | None = Field(default=None, description="直近のコンパイルエラー")
    passed: bool = Field(default=False, description="直近の実行結果")

    @classmethod
    def from_path(cls, path: str) -> TestSuite:
        abs_path = os.path.abspath(path)
        return cls(path=abs_path, package_name=os.path.basename(abs_path))

    def description(self) -> str:
        return self.path


class WatchConfig(BaseModel):
    """ループ開始時に確定する設定値

    explicitly_setにはユーザが明示的に指定した項目名が入る。
    seedやsuccinctの自動調整は、明示指定された項目には行わない。
    """

    model_config = ConfigDict(frozen=True)

    depth: int = Field(default=settings.depth, description="依存関係を辿る深さ")
    exclusion_pattern: str = Field(default=settings.watch_exclude, description="監視対象外ファイルの正規表現")
    tick_interval: float = Field(default=settings.tick_interval, description="ポーリング間隔(秒)")
    skip_package: str = Field(default=settings.skip_package, description="探索時にスキップするパッケージの正規表現")
    random_seed: int = Field(default=0, description="乱数シード")
    succinct: bool = Field(default=False, description="簡潔表示")
    verbose: bool = Field(default=False, description="詳細表示")
    explicitly_set: frozenset[str] = Field(default_factory=frozenset, description="ユーザが明示指定した項目")

    @field_validator("depth")
    @classmethod
    def check_depth(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"depth must be >= 0 (got {value})")
        return value

    @field_validator("tick_interval")
    @classmethod
    def check_tick_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"tick_interval must be > 0 (got {value})")
        return value

    @field_validator("exclusion_pattern", "skip_package")
    @classmethod
    def check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value

    def was_set(self, name: str) -> bool:
        return name in self.explicitly_set


class RunConfig(BaseModel):
    """1サイクル分の実行設定(サイクル開始時に1回だけ決める)"""

    model_config = ConfigDict(frozen=True)

    random_seed: int = Field(default=0, description="このサイクルで使う乱数シード")
    succinct: bool = Field(default=False, description="簡潔表示で実行するか")
    verbose: bool = Field(default=False, description="詳細表示で実行するか")
