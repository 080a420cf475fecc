import time
from typing import Protocol

from suitewatch.watch.interrupt import InterruptSignal


class TickSource(Protocol):
    def wait(self, interrupt: InterruptSignal) -> bool:
        """次のtickまで待つ(中断されたらFalse)"""


class Ticker:
    """固定間隔のtick(処理が間隔を超えた場合は次の境界まで待つ)"""

    def __init__(self, interval: float = 1.0, clock=time.monotonic):
        if interval <= 0:
            raise ValueError(f"interval must be > 0 (got {interval})")
        self.interval = interval
        self._clock = clock
        self._next_tick = clock() + interval

    def wait(self, interrupt: InterruptSignal) -> bool:
        now = self._clock()
        if now >= self._next_tick:
            # 取りこぼしたtickはまとめて1回にする
            missed = int((now - self._next_tick) // self.interval) + 1
            self._next_tick += missed * self.interval
        timeout = max(0.0, self._next_tick - now)
        if interrupt.wait(timeout):
            return False
        self._next_tick += self.interval
        return True
