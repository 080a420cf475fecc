import shlex
import subprocess
from typing import Any

from suitewatch.utils.log_util import log


class SubprocessUtil:
    @staticmethod
    def quote(args: list[str]) -> str:
        """コマンドをログ表示用の1行にクオートします(実行時には使いません)。"""
        return " ".join(shlex.quote(arg) for arg in args)

    @staticmethod
    def run(
        args: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        encoding: str = "utf-8",
        errors: str | None = None,
        timeout: float | None = None,
        *,  # ↑位置引数(args=とか省略可) ココから後はキーワード引数↓
        text: bool = True,
        capture_output: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """
        サブプロセスでコマンドを実行します。

        引数:
            args (list[str]): 実行するコマンド。
            cwd (Optional[str]): コマンドの作業ディレクトリ。
            env (Optional[Dict[str, str]]): 新しいプロセスの環境変数。
            timeout (Optional[float]): タイムアウト秒数。
            check (bool): Trueの場合、終了コードが0以外ならCalledProcessErrorを発生させます。
            capture_output (bool): Trueの場合、stdoutとstderrをキャプチャします。
            text (bool): Trueの場合、encodingでstdoutとstderrをデコードします。

        戻り値:
            subprocess.CompletedProcess: CompletedProcessインスタンス。

        例外:
            subprocess.CalledProcessError: checkがTrueで、プロセスが非ゼロの終了ステータスを返した場合。
            subprocess.TimeoutExpired: タイムアウトが発生した場合。
        """
        kwargs: dict[str, Any] = {
            "args": args,
            "cwd": cwd,
            "env": env,
            "timeout": timeout,
            "capture_output": capture_output,
            "text": text,
            "encoding": encoding,
            "errors": errors,
        }

        # Remove None values to use default subprocess.run behavior
        kwargs = {k: v for k, v in kwargs.items() if v is not None}
        log("run command=%s", SubprocessUtil.quote(args))

        # Avoid W1510: https://pylint.readthedocs.io/en/latest/user_guide/messages/warning/subprocess-run-check.html
        return subprocess.run(**kwargs, check=check)
