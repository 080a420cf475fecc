import os
import sys
from collections.abc import Sequence

from suitewatch.schema.schema import RunConfig, TestSuite
from suitewatch.utils.log_util import log
from suitewatch.utils.subprocess_util import SubprocessUtil

# PYTHONHASHSEEDに指定できる最大値
MAX_HASH_SEED = 4294967295


class SuiteRunner:
    """スイートをコンパイル(compileall)してからpytestで実行する"""

    def __init__(self, python: str = sys.executable, timeout: float | None = None):
        self.python = python
        self.timeout = timeout

    def compile_and_run(
        self, suite: TestSuite, run_config: RunConfig, additional_args: Sequence[str] = ()
    ) -> TestSuite:
        compiled = self.compile_suite(suite)
        if compiled.compilation_error:
            return compiled
        return self.run_compiled_suite(compiled, run_config, additional_args)

    def compile_suite(self, suite: TestSuite) -> TestSuite:
        result = SubprocessUtil.run(
            [self.python, "-m", "compileall", "-q", "-l", suite.path],
            timeout=self.timeout,
            capture_output=True,
            check=False,
        )
        if result.returncode != 0:
            message = (result.stdout or "") + (result.stderr or "")
            log("compile failed suite=%s", suite.path)
            return suite.model_copy(update={"compilation_error": message.strip(), "passed": False})
        return suite.model_copy(update={"compilation_error": None})

    def run_compiled_suite(
        self, suite: TestSuite, run_config: RunConfig, additional_args: Sequence[str] = ()
    ) -> TestSuite:
        command = [self.python, "-m", "pytest", suite.path, "-q" if run_config.succinct else "-v"]
        command.extend(additional_args)
        # 中断(SIGINT)は同じプロセスグループの子プロセスにも届くので、ここでは何もしない
        result = SubprocessUtil.run(
            command, cwd=suite.path, env=self._env(run_config), timeout=self.timeout, check=False
        )
        log("run suite=%s returncode=%d", suite.path, result.returncode)
        return suite.model_copy(update={"passed": result.returncode == 0})

    def _env(self, run_config: RunConfig) -> dict[str, str]:
        env = dict(os.environ)
        env["PYTHONHASHSEED"] = str(run_config.random_seed % (MAX_HASH_SEED + 1))
        env["SUITEWATCH_RANDOM_SEED"] = str(run_config.random_seed)
        return env
