import os
import shutil
import tempfile
import unittest
import unittest.mock
from typing import Any
from unittest.mock import MagicMock, patch

from suitewatch.schema.schema import RunConfig, TestSuite


class MockManager:
    """複数のモックをmock_nameという名前でアクセスできるようにするクラス"""

    def __init__(self):
        self.mock_dict: dict[str, MagicMock] = {}
        self._init_default_mocks()

    def _init_default_mocks(self):
        # コンソール出力を無効化するfixtureを生成
        self._set_mock("fixture_console_print_all", "suitewatch.utils.rich_console.console_print_all")

    def _set_mock(self, mock_name: str, mock_target: str, return_value: Any = None):
        # モックを生成してreturn_valueを設定
        instance = MagicMock()
        instance.return_value = return_value
        self.mock_dict[mock_name] = patch(mock_target, instance).start()

    def get_mock(self, mock_name: str) -> MagicMock | None:
        return self.mock_dict.get(mock_name)

    def get_mock_call_count(self, mock_name: str) -> int:
        # モック呼び出しの回数を取得
        return self.mock_dict[mock_name].call_count

    def set_mock_return_value(self, mock_target: str = "", mock_alias: str = "", return_value: Any = None) -> None:
        # モックをmock_dictから取り出すときの名前
        mock_name = mock_alias if mock_alias else mock_target
        if not mock_name:
            return

        mock = self.get_mock(mock_name)
        if mock:
            # 既存のモックに値だけ設定
            mock.return_value = return_value
        else:
            # 新規のモックを作成
            self._set_mock(mock_name, mock_target, return_value)

    def set_mock_side_effect(self, mock_target: str = "", mock_alias: str = "", side_effect: Any = None) -> None:
        # サイドエフェクトを持つモックを設定
        mock_name = mock_alias if mock_alias else mock_target
        if mock_name not in self.mock_dict:
            self._set_mock(mock_name, mock_target)
        self.mock_dict[mock_name].side_effect = side_effect


class BaseTestCase(unittest.TestCase):
    """一時ディレクトリにテスト用のプロジェクトを組み立てるためのベースクラス"""

    def setUp(self):
        # コンソール出力を無効化するmockをセットアップ
        self.mock_manager = MockManager()
        self._tmp_dir = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tmp_dir.name)
        self._mtime_offset = 0

    def tearDown(self):
        # モックを停止
        patch.stopall()
        self._tmp_dir.cleanup()

    def path(self, rel_path: str) -> str:
        return os.path.join(self.root, rel_path)

    def write_file(self, rel_path: str, content: str = "") -> str:
        file_path = self.path(rel_path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(content)
        return file_path

    def remove_tree(self, rel_path: str) -> None:
        shutil.rmtree(self.path(rel_path))

    def touch(self, rel_path: str) -> None:
        """mtimeを確実に進める(ファイルシステムの時刻精度に依存しないように)"""
        file_path = self.path(rel_path)
        stat = os.stat(file_path)
        self._mtime_offset += 10
        new_mtime_ns = stat.st_mtime_ns + self._mtime_offset * 1_000_000_000
        os.utime(file_path, ns=(stat.st_atime_ns, new_mtime_ns))

    def make_project(self) -> None:
        """alpha(スイートA)とbeta(alphaをimportするスイートB)を持つプロジェクト"""
        self.write_file("pyproject.toml", "[project]\nname = 'sample'\n")
        self.write_file("alpha/a.py", "VALUE = 1\n")
        self.write_file("alpha/test_alpha.py", "from alpha import a\n\n\ndef test_a():\n    assert a.VALUE == 1\n")
        self.write_file("beta/b.py", "from alpha.a import VALUE\n\nDOUBLE = VALUE * 2\n")
        self.write_file("beta/test_beta.py", "from beta import b\n\n\ndef test_b():\n    assert b.DOUBLE == 2\n")

    def suite(self, rel_path: str) -> TestSuite:
        return TestSuite.from_path(self.path(rel_path))

    def set_mock_return_value(self, mock_target: str = "", mock_alias: str = "", return_value: Any = None):
        self.mock_manager.set_mock_return_value(
            mock_target=mock_target, mock_alias=mock_alias, return_value=return_value
        )

    def set_mock_side_effect(self, mock_target: str = "", mock_alias: str = "", side_effect: Any = None):
        self.mock_manager.set_mock_side_effect(mock_target=mock_target, mock_alias=mock_alias, side_effect=side_effect)

    def check_mock_call_count(self, mock_name: str, expected_count: int):
        self.assertEqual(self.mock_manager.get_mock_call_count(mock_name), expected_count, mock_name)


class FakeTickSource:
    """実時間を待たないtick。actionsを1つずつ実行してからtickを返し、尽きたら中断する"""

    def __init__(self, actions=()):
        self.actions = list(actions)
        self.wait_count = 0

    def wait(self, interrupt) -> bool:
        self.wait_count += 1
        if interrupt.is_set():
            return False
        if not self.actions:
            interrupt.set("fake ticks exhausted")
            return False
        action = self.actions.pop(0)
        if action is not None:
            action()
        return True


class FakeRunner:
    """compile_and_runの代わり。呼ばれたスイートを記録して結果を返す"""

    def __init__(self, passed: bool = True, compilation_errors: dict[str, str] | None = None, on_run=None):
        self.passed = passed
        self.compilation_errors = compilation_errors or {}
        self.on_run = on_run
        self.calls: list[tuple[TestSuite, RunConfig, list[str]]] = []

    def __call__(self, suite: TestSuite, run_config: RunConfig, additional_args=()) -> TestSuite:
        self.calls.append((suite, run_config, list(additional_args)))
        if self.on_run is not None:
            self.on_run(suite)
        error = self.compilation_errors.get(suite.path)
        if error:
            return suite.model_copy(update={"compilation_error": error, "passed": False})
        return suite.model_copy(update={"passed": self.passed})

    @property
    def run_paths(self) -> list[str]:
        return [suite.path for suite, _, _ in self.calls]
