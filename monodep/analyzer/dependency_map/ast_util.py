import ast

from monodep.utils.log_util import log


def ast_parse(content: str, file_name: str = "<unknown>") -> ast.AST | None:
    try:
        return ast.parse(content, filename=file_name)
    except (SyntaxError, ValueError) as e:
        log("ast_parse failed file_name=%s, error=%s", file_name, e)
        return None


def extract_module_references(content: str, file_name: str = "<unknown>") -> set[str]:
    """ソースコードからimportしているモジュール名を抽出する(構文解析のみ、ASTは書き換えない)

    - import a.b           => "a.b"
    - from a.b import c    => "a.b", "a.b.c" (cがモジュールかどうかは区別できないため両方)
    - from . import c      => ".c"
    - from ..x import y    => "..x", "..x.y"

    構文エラーのファイルは空集合を返す。
    """
    tree = ast_parse(content, file_name)
    if tree is None:
        return set()

    references: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                references.add(alias.name)
        elif isinstance(node, ast.ImportFrom):
            prefix = "." * node.level
            module = node.module or ""
            if module:
                references.add(prefix + module)
            for alias in node.names:
                if alias.name == "*":
                    continue
                full_name = f"{module}.{alias.name}" if module else alias.name
                references.add(prefix + full_name)
    return references


def top_level_name(reference: str) -> str:
    # "a.b.c" => "a"(相対importは空文字)
    if reference.startswith("."):
        return ""
    return reference.split(".", 1)[0]
