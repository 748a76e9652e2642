import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from monodep import settings
from monodep.errors import ConfigError
from monodep.schema.schema import Project, WorkspaceConfig
from monodep.utils.log_util import log, log_inout

# 要求文字列(例: "requests[socks]>=2.0; python_version>'3.8'")の先頭の配布パッケージ名
REQUIREMENT_NAME_PATTERN = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def canonicalize_name(name: str) -> str:
    # PEP 503 の正規化(大文字小文字と "-_." の違いを無視する)
    return re.sub(r"[-_.]+", "-", name).lower()


def parse_requirement_name(requirement: str) -> str:
    match = REQUIREMENT_NAME_PATTERN.match(requirement)
    return canonicalize_name(match.group(1)) if match else ""


@dataclass
class ManifestInfo:
    path: Path
    dependencies: set[str] = field(default_factory=set)  # 正規化済みの配布パッケージ名

    def declares(self, distribution_name: str) -> bool:
        return canonicalize_name(distribution_name) in self.dependencies


class WorkspaceConfigLoader:
    """ワークスペース定義(workspace.json)を読み込む

    読み込みのみで、ファイルシステムには何も書き込まない。
    """

    def __init__(self, workspace_root: str | Path, workspace_file: str = ""):
        self.root = Path(workspace_root).resolve()
        self.workspace_file = self.root / (workspace_file or settings.workspace_file)

    @log_inout
    def load(self, *, check_roots: bool = True) -> WorkspaceConfig:
        """workspace.json を読み込む

        check_roots=False ならルートディレクトリの存在は確認しない(lintで違反として報告するため)。
        """
        if not self.workspace_file.is_file():
            msg = f"ワークスペース定義が見つかりません: {self.workspace_file}"
            raise ConfigError(msg)

        try:
            content = self.workspace_file.read_text(encoding="utf-8")
        except OSError as e:
            msg = f"ワークスペース定義を読み込めません: {self.workspace_file}: {e}"
            raise ConfigError(msg) from e

        try:
            config = WorkspaceConfig.model_validate_json(content)
        except ValidationError as e:
            msg = f"ワークスペース定義が不正です: {self.workspace_file}\n{e}"
            raise ConfigError(msg) from e

        self._check_projects(config.projects, check_roots=check_roots)
        log("loaded projects=%s", [project.name for project in config.projects])
        return config

    def projects(self) -> list[Project]:
        return list(self.load().projects)

    def _check_projects(self, projects: list[Project], *, check_roots: bool) -> None:
        seen: set[str] = set()
        for project in projects:
            if project.name in seen:
                msg = f"プロジェクト名が重複しています: {project.name}"
                raise ConfigError(msg)
            seen.add(project.name)

            if check_roots and not (self.root / project.root).is_dir():
                msg = f"プロジェクト '{project.name}' のルートディレクトリが存在しません: {project.root}"
                raise ConfigError(msg)

    def load_manifest(self, config: WorkspaceConfig) -> ManifestInfo:
        """依存マニフェスト(pyproject.toml)から宣言済みの外部依存を読み込む"""
        manifest_path = self.root / config.manifest
        if not manifest_path.is_file():
            msg = f"依存マニフェストが見つかりません: {manifest_path}"
            raise ConfigError(msg)

        try:
            data = tomllib.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            msg = f"依存マニフェストが不正です: {manifest_path}: {e}"
            raise ConfigError(msg) from e

        project_table = data.get("project", {})
        requirements = list(project_table.get("dependencies", []))
        for group in project_table.get("optional-dependencies", {}).values():
            requirements.extend(group)

        manifest = ManifestInfo(path=manifest_path)
        for requirement in requirements:
            if not isinstance(requirement, str):
                msg = f"依存マニフェストの要求が文字列ではありません: {requirement!r}"
                raise ConfigError(msg)
            name = parse_requirement_name(requirement)
            if name:
                manifest.dependencies.add(name)
        log("manifest dependencies=%s", sorted(manifest.dependencies))
        return manifest
