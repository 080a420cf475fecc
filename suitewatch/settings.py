import os
from os.path import dirname, join

from dotenv import load_dotenv

load_dotenv()

dotenv_path = join(dirname(__file__), ".env")
load_dotenv(dotenv_path)


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# デバッグ出力(log()が有効になる)
is_debug = _get_bool("SUITEWATCH_DEBUG")

# 依存関係を辿る深さ(0: スイート自身のファイルのみ)
depth = int(os.getenv("SUITEWATCH_DEPTH", "1"))

# 監視対象から外すファイルの正規表現(絶対パスに対してsearchする)
watch_exclude = os.getenv("SUITEWATCH_WATCH_EXCLUDE", r"(\.py[cod]|\.swp|~)$")

# ポーリング間隔(秒)
tick_interval = float(os.getenv("SUITEWATCH_TICK_INTERVAL", "1.0"))

# スイート探索時にスキップするパッケージの正規表現(空なら無効)
skip_package = os.getenv("SUITEWATCH_SKIP_PACKAGE", "")

# ログファイル(空ならファイル出力しない)
log_file = os.getenv("SUITEWATCH_LOG_FILE", "")
rich_log_file = os.getenv("SUITEWATCH_RICH_LOG_FILE", "")
