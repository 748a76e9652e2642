from __future__ import annotations

import posixpath
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TARGET_COMMAND = ["make", "{target}", "APP={app}"]


class ProjectKind(str, Enum):
    APP = "app"  # アプリケーション(ビルド・e2eの対象)
    LIB = "lib"  # ライブラリ

    def __str__(self):
        return self.value

    def __repr__(self) -> str:
        return self.value


def normalize_path(path: str) -> str:
    """ワークスペース相対パスをPOSIX形式に正規化する("./"や末尾の"/"を除去)"""
    path = path.strip().replace("\\", "/")
    normalized = posixpath.normpath(path) if path else ""
    return "" if normalized == "." else normalized


class Project(BaseModel):
    """ワークスペースに宣言されたアプリまたはライブラリ(名前で識別、読み込み後は不変)"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="プロジェクト名(ワークスペース内で一意)")
    kind: ProjectKind = Field(description="app または lib")
    root: str = Field(description="プロジェクトのルートディレクトリ(ワークスペース相対)")
    tags: frozenset[str] = Field(default_factory=frozenset, description="任意のタグ")

    @field_validator("root")
    @classmethod
    def _normalize_root(cls, value: str) -> str:
        root = normalize_path(value)
        if not root or root.startswith("../") or root == ".." or posixpath.isabs(root):
            msg = f"root must be a relative path inside the workspace: {value!r}"
            raise ValueError(msg)
        return root

    @property
    def module_name(self) -> str:
        # import文で使われる名前(命名規約)
        return self.name.replace("-", "_")

    def contains(self, path: str) -> bool:
        return path == self.root or path.startswith(self.root + "/")


class WorkspaceConfig(BaseModel):
    """workspace.json の内容"""

    scope: str = Field(default="", description="プロジェクトをimportするときの名前空間(例: acme => acme.core)")
    apps_dir: str = Field(default="apps", description="アプリを配置するディレクトリ")
    libs_dir: str = Field(default="libs", description="ライブラリを配置するディレクトリ")
    manifest: str = Field(default="pyproject.toml", description="外部依存を宣言するマニフェスト")
    projects: list[Project] = Field(default_factory=list, description="宣言されたプロジェクト一覧")
    aliases: dict[str, str] = Field(default_factory=dict, description="モジュール名(前方一致) => プロジェクト名")
    package_modules: dict[str, str] = Field(default_factory=dict, description="import名 => 配布パッケージ名")
    implicit_ignore: list[str] = Field(
        default_factory=list, description="どのプロジェクトにも影響しないワークスペースファイルのglob"
    )
    targets: dict[str, list[str]] = Field(default_factory=dict, description="サブコマンド => 実行コマンドテンプレート")

    @field_validator("apps_dir", "libs_dir")
    @classmethod
    def _normalize_dir(cls, value: str) -> str:
        return normalize_path(value)

    def get_project(self, name: str) -> Project | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def project_names(self) -> list[str]:
        return sorted(project.name for project in self.projects)

    def command_template(self, target: str) -> list[str]:
        return self.targets.get(target, DEFAULT_TARGET_COMMAND)


class IntegrityViolation(BaseModel):
    category: str
    message: str


class ViolationGroup(BaseModel):
    header: str = Field(description="人が読むための見出し")
    category: str
    violations: list[IntegrityViolation] = Field(default_factory=list)


# ---------------------------------------------------------------
# コマンド別のオプション
# ---------------------------------------------------------------


class AffectedOptions(BaseModel):
    workspace: str = Field(default=".", description="ワークスペースのルートディレクトリ")
    command: str = Field(default="apps", description="apps | libs | build | e2e | dep-graph")
    files: str = Field(default="", description="カンマ区切りの変更ファイル一覧")
    base: str = Field(default="", description="比較元リビジョン")
    head: str = Field(default="", description="比較先リビジョン")
    parallel: bool = Field(default=False, description="ビルドを並列実行する")
    max_workers: int | None = Field(default=None, description="並列実行時の最大プロセス数")
    output_file: str = Field(default="", description="dep-graphの出力ファイル")
    rest: list[str] = Field(default_factory=list, description="外部ビルドツールにそのまま渡す引数")


class DepGraphOptions(BaseModel):
    workspace: str = Field(default=".", description="ワークスペースのルートディレクトリ")
    output_file: str = Field(default="", description="出力ファイル(.json/.dot)。空なら標準出力にJSON")


class LintOptions(BaseModel):
    workspace: str = Field(default=".", description="ワークスペースのルートディレクトリ")


# ---------------------------------------------------------------
# ビルド結果
# ---------------------------------------------------------------


class ProcessResult(BaseModel):
    app: str
    command: list[str] = Field(default_factory=list)
    returncode: int = 0
    output: str = Field(default="", description="並列実行時にキャプチャした出力(stdout+stderr)")

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class BuildReport(BaseModel):
    target: str = Field(description="実行したサブコマンド(build, e2e など)")
    parallel: bool = False
    apps: list[str] = Field(default_factory=list, description="対象アプリ(入力順)")
    results: list[ProcessResult] = Field(default_factory=list)
    cancelled: bool = Field(default=False, description="シグナルなどで中断された")

    @property
    def skipped(self) -> bool:
        # 対象アプリがなく何も実行していない(失敗ではない)
        return not self.apps

    @property
    def failed_apps(self) -> list[str]:
        return [result.app for result in self.results if not result.succeeded]

    @property
    def not_run_apps(self) -> list[str]:
        ran = {result.app for result in self.results}
        return [app for app in self.apps if app not in ran]

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and not self.failed_apps and not self.not_run_apps

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return 0
        if not self.parallel and not self.cancelled and self.failed_apps:
            # 逐次実行では最初に失敗したプロセスの終了コードを返す(シグナルで終了した場合はシェルと同じ 128+シグナル番号)
            returncode = self.results[-1].returncode
            return returncode if returncode > 0 else 128 - returncode
        return 1
