import signal
import threading

from suitewatch.utils.log_util import log, log_i


class InterruptSignal:
    """一度だけ立つ停止フラグ(全待機箇所へブロードキャストされる)

    スケジューラのコンストラクタに渡して使う。OSのシグナルと結びつける場合は
    install_signal_handlers()を呼ぶ。
    """

    def __init__(self):
        self._event = threading.Event()
        # set()はシグナルハンドラから再入されうる
        self._lock = threading.RLock()
        self._reason = ""
        self._previous_handlers: dict[int, object] = {}

    @property
    def reason(self) -> str:
        return self._reason

    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self, reason: str = "interrupted") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
        log_i("interrupt: %s", reason)

    def wait(self, timeout: float | None = None) -> bool:
        """停止されるかtimeoutまで待つ(停止されていればTrue)"""
        return self._event.wait(timeout)

    def channel(self) -> threading.Event:
        return self._event

    def install_signal_handlers(self, signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)) -> None:
        # signal.signalはメインスレッドからしか呼べない
        for signum in signals:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)
        log("installed signal handlers: %s", signals)

    def restore(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame):
        self.set(f"received {signal.Signals(signum).name}")
