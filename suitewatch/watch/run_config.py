import time
from collections.abc import Callable

from suitewatch.schema.schema import RunConfig, WatchConfig
from suitewatch.utils.log_util import log


def decide_seed(config: WatchConfig, clock: Callable[[], float] = time.time) -> int:
    """--seedが明示されていればそれを使い、そうでなければサイクルごとに更新する"""
    if config.was_set("random_seed"):
        return config.random_seed
    return int(clock())


def decide_succinct(config: WatchConfig, num_suites: int) -> bool:
    """1スイートなら詳細寄り、複数なら簡潔表示(--verbose/--succinctの明示指定を優先)"""
    if config.verbose:
        return False
    if config.was_set("succinct"):
        return config.succinct
    return num_suites > 1


def decide_run_config(config: WatchConfig, num_suites: int, clock: Callable[[], float] = time.time) -> RunConfig:
    run_config = RunConfig(
        random_seed=decide_seed(config, clock),
        succinct=decide_succinct(config, num_suites),
        verbose=config.verbose,
    )
    log("run_config=%s (num_suites=%d)", run_config, num_suites)
    return run_config
