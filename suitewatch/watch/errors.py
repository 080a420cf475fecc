class WatchError(Exception):
    pass


class NoSuitesFoundError(WatchError):
    """最初の探索でスイートが1つも見つからなかった(起動時のみ致命的)"""

    def __init__(self, roots: list[str] | tuple[str, ...]):
        super().__init__(f"Found no test suites in {', '.join(roots) or '.'}")
        self.roots = list(roots)


class WatchInterruptedError(WatchError):
    """中断による協調的な停止(エラー扱いにはしない)"""
