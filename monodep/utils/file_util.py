import os
from collections.abc import Iterator
from pathlib import Path

# 除外キーワード(.git配下は対象外など)
IGNORE_DIR_NAMES = {".git", "__pycache__", ".venv", "node_modules", ".mypy_cache", ".pytest_cache"}


class FileUtil:
    @staticmethod
    def read_file(file_path: str | Path) -> str:
        if os.path.isfile(file_path):
            with open(file_path, encoding="utf-8", errors="replace") as file:
                return file.read()
        return ""

    @staticmethod
    def write_file(file_path: str | Path, content: str) -> str:
        file_dir = os.path.dirname(file_path)
        if file_dir:
            os.makedirs(file_dir, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as file:
            file.write(content)
        return str(file_path)

    @staticmethod
    def iter_files(root_path: str | Path, ext: str = "", *, skip_hidden: bool = True) -> Iterator[Path]:
        """root_path 配下のファイルを順に返す(何度呼んでも同じ順序で最初から列挙し直せる)

        Args:
            root_path: 探索するディレクトリ
            ext: 拡張子で絞り込む場合に指定(例: ".py")
            skip_hidden: "."で始まるファイル・ディレクトリを除外する

        Yields:
            Path: ファイルのパス(ディレクトリ名・ファイル名の昇順)
        """
        root_path = Path(root_path)
        if not root_path.is_dir():
            return
        for dir_path, dir_names, file_names in os.walk(root_path):
            # os.walkにdir_namesの絞り込みと並び順を反映させる(walk中だけのローカルなリスト)
            dir_names[:] = sorted(
                d for d in dir_names if d not in IGNORE_DIR_NAMES and not (skip_hidden and d.startswith("."))
            )
            for file_name in sorted(file_names):
                if skip_hidden and file_name.startswith("."):
                    continue
                if ext and not file_name.endswith(ext):
                    continue
                yield Path(dir_path) / file_name
