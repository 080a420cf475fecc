import ast

from suitewatch.analyzer.dependency_map.dependency_types import GraphError


def ast_parse_file(file_path: str) -> ast.AST:
    try:
        with open(file_path, encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise GraphError(f"cannot read {file_path}: {e}", path=file_path) from e
    try:
        return ast.parse(content, filename=file_path)
    except (SyntaxError, ValueError) as e:
        raise GraphError(f"cannot parse {file_path}: {e}", path=file_path) from e
