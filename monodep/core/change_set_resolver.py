import posixpath
from collections.abc import Iterable
from pathlib import Path

from monodep import settings
from monodep.analyzer.dependency_map.dependency_types import ChangeSet
from monodep.errors import ChangeSetError, SourceControlError
from monodep.schema.schema import normalize_path
from monodep.utils.log_util import log_d, log_inout
from monodep.utils.subprocess_util import SubprocessUtil


class ChangeSetResolver:
    """呼び出し時の入力(ファイル一覧 または リビジョン範囲)を変更ファイル一覧に変換する

    2つの入力方法は排他。
      - ファイル一覧: 書式だけを検証する(削除されたファイルも有効なので存在は確認しない)
      - リビジョン範囲: git diff の結果をワークスペース相対パスにする
    """

    def __init__(self, workspace_root: str | Path, git_command: str = ""):
        self.root = Path(workspace_root).resolve()
        self.git_command = git_command or settings.git_command

    @log_inout
    def resolve(self, files: str | Iterable[str] | None = None, base: str = "", head: str = "") -> ChangeSet:
        has_files = files is not None and files != ""
        has_revisions = bool(base or head)
        if has_files and has_revisions:
            msg = "ファイル一覧とリビジョン範囲は同時に指定できません"
            raise ChangeSetError(msg)
        if has_files:
            return self.from_files(files)
        if base and head:
            return self.from_revisions(base, head)
        msg = "変更の入力が指定されていません(リビジョンは2つ必要です)"
        raise SourceControlError(msg)

    def from_files(self, files: str | Iterable[str]) -> ChangeSet:
        if isinstance(files, str):
            files = files.split(",")
        return self._normalize(files, strict=True)

    def from_revisions(self, base: str, head: str) -> ChangeSet:
        for revision in (base, head):
            # "-"始まりはgitのオプションとして解釈されてしまう
            if not revision.strip() or revision.startswith("-"):
                msg = f"不正なリビジョンです: {revision!r}"
                raise SourceControlError(msg)

        # -z: 非ASCIIのパスもクオートせずNUL区切りで出力する
        args = [self.git_command, "diff", "--name-only", "--relative", "--no-renames", "-z", base, head, "--"]
        try:
            result = SubprocessUtil.run(args, cwd=str(self.root), capture_output=True, check=True)
        except FileNotFoundError as e:
            msg = f"gitコマンドが見つかりません: {self.git_command}"
            raise SourceControlError(msg) from e
        except SubprocessUtil.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            msg = f"リビジョン範囲 {base}..{head} の差分を取得できません: {stderr}"
            raise SourceControlError(msg) from e

        lines = [line for line in result.stdout.split("\0") if line.strip()]
        log_d("git diff files=%s", lines)
        return self._normalize(lines, strict=False)

    def _normalize(self, files: Iterable[str], *, strict: bool) -> ChangeSet:
        change_set: dict[str, None] = {}  # 入力順を保ったまま重複を除く
        for file in files:
            path = normalize_path(file)
            if not path:
                if strict:
                    msg = f"空のファイル名が含まれています: {file!r}"
                    raise ChangeSetError(msg)
                continue
            if posixpath.isabs(path) or path == ".." or path.startswith("../"):
                msg = f"ワークスペース外のパスは指定できません: {file!r}"
                raise ChangeSetError(msg)
            change_set[path] = None
        return tuple(change_set)
