import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from suitewatch.analyzer.dependency_map.dependency_types import GraphError
from suitewatch.analyzer.dependency_map.signature import Signature
from suitewatch.schema.schema import RunConfig, TestSuite, WatchConfig, WatchState
from suitewatch.utils.log_util import log, log_e, log_i, log_w
from suitewatch.utils.rich_console import (
    display_compilation_error,
    display_cycle_done,
    display_delta,
    display_identified,
    display_run_config,
    display_watching,
)
from suitewatch.watch.delta_tracker import DeltaTracker
from suitewatch.watch.errors import NoSuitesFoundError, WatchInterruptedError
from suitewatch.watch.interrupt import InterruptSignal
from suitewatch.watch.run_config import decide_run_config
from suitewatch.watch.tick_source import Ticker, TickSource

FindSuites = Callable[[Sequence[str], WatchConfig], list[TestSuite]]
CompileAndRun = Callable[[TestSuite, RunConfig, Sequence[str]], TestSuite]


@dataclass
class CycleReport:
    """1サイクル(1回の実行リスト)の結果"""

    run_config: RunConfig
    results: list[TestSuite] = field(default_factory=list)
    interrupted: bool = False

    @property
    def passed(self) -> bool:
        return all(suite.passed for suite in self.results)


class SpecWatcher:
    """スイートを監視し、変更のあったものだけを順に再コンパイル・実行する

    状態遷移:
        IDLE -> DISCOVERING -> CLASSIFYING -> RUNNING -> IDLE
                                           -> IDLE(実行対象なし)
        どこからでも中断で STOPPED(終端)
    """

    def __init__(
        self,
        config: WatchConfig,
        roots: Sequence[str],
        additional_args: Sequence[str] = (),
        *,
        interrupt: InterruptSignal,
        find_suites: FindSuites,
        compile_and_run: CompileAndRun,
        tick_source: TickSource | None = None,
        tracker: DeltaTracker | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.roots = list(roots)
        self.additional_args = list(additional_args)
        self.interrupt = interrupt
        self.find_suites = find_suites
        self.compile_and_run = compile_and_run
        self.tick_source = tick_source if tick_source is not None else Ticker(config.tick_interval)
        self.tracker = tracker if tracker is not None else DeltaTracker(config.depth, config.exclusion_pattern)
        self.clock = clock
        self.state = WatchState.IDLE
        self.cycles: list[CycleReport] = []
        self._snapshot: list[TestSuite] = []
        self._run_list: list[TestSuite] = []

    def watch_specs(self) -> None:
        """最初の探索を行い、中断されるまで監視ループを回す"""
        suites = self.find_suites(self.roots, self.config)
        if not suites:
            raise NoSuitesFoundError(self.roots)

        display_identified(len(suites), self.tracker.max_depth)
        delta, _ = self.tracker.delta(suites, show_progress=True)
        display_watching(delta)

        if len(suites) == 1:
            # 1スイートだけなら最初に1回実行しておく
            self._run_cycle([suites[0]])

        if self.interrupt.is_set():
            self._transition(WatchState.STOPPED)
            return
        self.run_loop()

    def run_loop(self) -> None:
        handlers = {
            WatchState.IDLE: self._on_idle,
            WatchState.DISCOVERING: self._on_discovering,
            WatchState.CLASSIFYING: self._on_classifying,
            WatchState.RUNNING: self._on_running,
        }
        while self.state is not WatchState.STOPPED:
            handlers[self.state]()
        log_i("watch loop stopped: %s", self.interrupt.reason)

    def _transition(self, state: WatchState) -> None:
        log("state %s -> %s", self.state, state)
        self.state = state

    def _on_idle(self) -> None:
        if self.interrupt.is_set() or not self.tick_source.wait(self.interrupt) or self.interrupt.is_set():
            self._transition(WatchState.STOPPED)
            return
        self._transition(WatchState.DISCOVERING)

    def _on_discovering(self) -> None:
        # このtickの分類はここで取ったスナップショットだけを使う
        self._snapshot = list(self.find_suites(self.roots, self.config))
        self._transition(WatchState.CLASSIFYING)

    def _on_classifying(self) -> None:
        delta, _ = self.tracker.delta(self._snapshot)
        display_delta(delta)
        self._run_list = delta.suites_to_run()
        self._transition(WatchState.RUNNING if self._run_list else WatchState.IDLE)

    def _on_running(self) -> None:
        report = self._run_cycle(self._run_list)
        self._run_list = []
        self._transition(WatchState.STOPPED if report.interrupted else WatchState.IDLE)

    def _run_cycle(self, suites: list[TestSuite]) -> CycleReport:
        # seedと表示モードはサイクル単位で1回だけ決める
        run_config = decide_run_config(self.config, len(suites), self.clock)
        report = CycleReport(run_config=run_config)
        self.cycles.append(report)
        display_run_config(run_config, len(suites))

        for suite in suites:
            if self.interrupt.is_set():
                report.interrupted = True
                return report
            result = self._run_suite(suite, run_config)
            if result is None:
                report.interrupted = True
                return report
            report.results.append(result)

        display_cycle_done(passed=report.passed)
        return report

    def _run_suite(self, suite: TestSuite, run_config: RunConfig) -> TestSuite | None:
        """1スイートを実行する(中断された場合はNoneで、観測済みにはしない)"""
        # 実行中の編集を取りこぼさないよう、実行前の状態を観測結果として記録する
        signature = self._capture_signature(suite)
        try:
            result = self.compile_and_run(suite, run_config, self.additional_args)
        except WatchInterruptedError:
            log_i("run of %s was interrupted", suite.path)
            return None
        except Exception as e:
            # 1スイートの失敗でループを止めない(失敗として記録して次へ)
            log_e("run of %s failed: %r", suite.path, e)
            result = suite.model_copy(update={"compilation_error": f"{type(e).__name__}: {e}", "passed": False})
        if self.interrupt.is_set():
            log_i("run of %s finished after interrupt, not marking as observed", suite.path)
            return None

        if result.compilation_error:
            display_compilation_error(result)
        if signature is not None:
            self.tracker.mark_observed(suite, signature)
        return result

    def _capture_signature(self, suite: TestSuite) -> Signature | None:
        try:
            return self.tracker.signature(suite)
        except GraphError as e:
            log_w("cannot capture signature of %s: %s", suite.path, e)
            return None
