import ast
import os

from suitewatch.analyzer.dependency_map.ast_util import ast_parse_file
from suitewatch.analyzer.dependency_map.dependency_manager_base import DependencyManagerBase
from suitewatch.utils.log_util import log

# プロジェクトルートの目印
PROJECT_ROOT_MARKERS = ["pyproject.toml", "setup.py", "setup.cfg"]

# 除外キーワード(依存先として扱わないパス)
IGNORE_KEYWORDS = ["site-packages", "dist-packages", "__pycache__", ".git"]


class DependencyManagerPy(DependencyManagerBase):
    """Pythonのimport文からパッケージ(ディレクトリ)間の依存を求める"""

    def _parse_imports(self, package: str, paths: tuple[str, ...]) -> list[tuple[list[str], str | None]]:
        imports = []
        for file_path in paths:
            if not file_path.endswith(".py"):
                continue
            tree = ast_parse_file(file_path)
            imports.extend(self._extract_imports(tree, file_path))
        log("parse package=%s imports=%d", package, len(imports))
        return imports

    def _resolve_imports(self, package: str, imports: list[tuple[list[str], str | None]]) -> set[str]:
        search_roots = self._search_roots(package)
        imported = set()
        for module_names, base_dir in imports:
            resolved = self._resolve_import(module_names, base_dir, search_roots)
            if resolved:
                imported.add(resolved)
        return imported

    def _extract_imports(self, tree: ast.AST, file_path: str) -> list[tuple[list[str], str | None]]:
        """ASTからimport文を抽出

        戻り値: (候補のモジュール名リスト(優先順), 相対importの基準ディレクトリ or None)
        """
        imports = []
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    imports.append(([alias.name], None))
            elif isinstance(node, ast.ImportFrom):
                module = node.module or ""
                base_dir = None
                if node.level:
                    # from . import x / from ..pkg import y
                    base_dir = os.path.dirname(file_path)
                    for _ in range(node.level - 1):
                        base_dir = os.path.dirname(base_dir)
                for alias in node.names:
                    # from a.b import c は a.b.c(サブモジュール)を優先、だめなら a.b
                    candidates = []
                    if alias.name != "*":
                        candidates.append(f"{module}.{alias.name}" if module else alias.name)
                    if module:
                        candidates.append(module)
                    elif base_dir is not None:
                        candidates.append("")
                    imports.append((candidates, base_dir))
        return imports

    def _resolve_import(self, module_names: list[str], base_dir: str | None, search_roots: list[str]) -> str | None:
        """モジュール名をパッケージディレクトリに解決する(プロジェクト外ならNone)"""
        roots = [base_dir] if base_dir is not None else search_roots
        for module_name in module_names:
            for root in roots:
                resolved = _resolve_in_root(module_name, root)
                if resolved and self._is_valid_path(resolved):
                    return resolved
        return None

    def _search_roots(self, package: str) -> list[str]:
        roots = [_get_base_dir(package)]
        project_root = _get_project_root(package)
        if project_root:
            roots.append(project_root)
            src_dir = os.path.join(project_root, "src")
            if os.path.isdir(src_dir):
                roots.append(src_dir)
        # 重複除去(順序は維持)
        return list(dict.fromkeys(roots))

    def _is_valid_path(self, path: str) -> bool:
        return not any(keyword in path for keyword in IGNORE_KEYWORDS)


def _resolve_in_root(module_name: str, root: str) -> str | None:
    if not module_name:
        return root if os.path.isdir(root) else None
    candidate = os.path.join(root, *module_name.split("."))
    if os.path.isdir(candidate):
        return os.path.abspath(candidate)
    if os.path.isfile(candidate + ".py"):
        return os.path.abspath(os.path.dirname(candidate))
    return None


def _get_base_dir(package: str) -> str:
    """__init__.pyを持たない最初の祖先(pytestがsys.pathに入れるディレクトリ)"""
    current = package
    while os.path.isfile(os.path.join(current, "__init__.py")):
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return current


def _get_project_root(package: str) -> str | None:
    """プロジェクトのルートディレクトリを推測"""
    current = package
    while True:
        if any(os.path.isfile(os.path.join(current, marker)) for marker in PROJECT_ROOT_MARKERS):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent
