import itertools
import sys
from collections.abc import Iterator
from pathlib import Path

from tqdm import tqdm

from monodep.analyzer.dependency_map.dependency_types import ProjectGraph, SourceFileMetadata
from monodep.errors import ResolutionError
from monodep.schema.schema import Project, WorkspaceConfig
from monodep.utils.file_util import FileUtil
from monodep.utils.log_util import log, log_i, log_inout


def find_overlapping_roots(projects: list[Project]) -> list[tuple[Project, Project]]:
    """ルートが同一、または一方が他方の配下にあるプロジェクトの組を返す"""
    overlaps = []
    for first, second in itertools.combinations(sorted(projects, key=lambda p: p.root), 2):
        if second.contains(first.root) or first.contains(second.root):
            overlaps.append((first, second))
    return overlaps


def find_owner(projects: list[Project], path: str) -> Project | None:
    """path を含むプロジェクトのうち、ルートが最も長く一致するものを返す"""
    owner = None
    for project in projects:
        if project.contains(path) and (owner is None or len(project.root) > len(owner.root)):
            owner = project
    return owner


class DependencyManagerBase:
    """ワークスペースの全ソースを走査してプロジェクト間の依存グラフを構築する

    言語ごとの差分(拡張子、参照の抽出、参照先プロジェクトの解決)はサブクラスで実装する。
    """

    source_ext = ""

    def __init__(self, workspace_root: str | Path, config: WorkspaceConfig):
        self.root = Path(workspace_root).resolve()
        self.config = config
        self.projects: list[Project] = sorted(config.projects, key=lambda p: p.name)
        self.metadata: dict[str, SourceFileMetadata] = {}

    @log_inout
    def build(self) -> ProjectGraph:
        """依存グラフを毎回ゼロから構築する"""
        self.validate_config()
        self.metadata = {}
        self.scan_project()

        edges = set()
        for file_metadata in self.metadata.values():
            for dependency in file_metadata.dependencies:
                edges.add((file_metadata.project, dependency))
        log_i("project graph built: projects=%d, edges=%d", len(self.projects), len(edges))
        return ProjectGraph(self.projects, edges)

    def validate_config(self) -> None:
        overlaps = find_overlapping_roots(self.projects)
        if overlaps:
            details = ", ".join(f"{a.name}({a.root}) <-> {b.name}({b.root})" for a, b in overlaps)
            msg = f"プロジェクトのルートが重複しています: {details}"
            raise ResolutionError(msg)

        project_names = {project.name for project in self.projects}
        for module, project_name in sorted(self.config.aliases.items()):
            if project_name not in project_names:
                msg = f"エイリアス '{module}' の参照先プロジェクト '{project_name}' が宣言されていません"
                raise ResolutionError(msg)

    def iter_source_files(self, project: Project) -> Iterator[Path]:
        return FileUtil.iter_files(self.root / project.root, self.source_ext)

    def scan_project(self) -> None:
        """プロジェクト全体をスキャンして依存関係を構築"""
        for project in self.projects:
            source_files = tqdm(
                self.iter_source_files(project), unit="files", file=sys.stderr, desc=project.name, disable=None
            )
            for file_path in source_files:
                self._analyze_file(project, file_path)

    def project_for_path(self, path: str) -> Project | None:
        return find_owner(self.projects, path)

    def external_references(self) -> dict[str, set[str]]:
        """外部パッケージのトップレベル名 => それをimportしているファイル(ワークスペース相対)"""
        if not self.metadata:
            self.scan_project()

        external: dict[str, set[str]] = {}
        for file_metadata in self.metadata.values():
            project = self.config.get_project(file_metadata.project)
            for reference in file_metadata.references:
                package = self._external_package(project, reference)
                if package:
                    external.setdefault(package, set()).add(file_metadata.path)
        return external

    def _analyze_file(self, project: Project, file_path: Path) -> None:
        """個別ファイルの解析"""
        rel_path = file_path.relative_to(self.root).as_posix()
        references = self._extract_references(FileUtil.read_file(file_path), rel_path)

        dependencies = set()
        for reference in references:
            target = self._resolve_reference(project, reference)
            if target and target != project.name:
                dependencies.add(target)

        self.metadata[rel_path] = SourceFileMetadata(
            path=rel_path, project=project.name, references=references, dependencies=dependencies
        )
        if dependencies:
            log("file=%s dependencies=%s", rel_path, sorted(dependencies))

    def _extract_references(self, content: str, file_name: str) -> set[str]:
        raise NotImplementedError

    def _resolve_reference(self, project: Project, reference: str) -> str | None:
        """参照先のプロジェクト名を返す(プロジェクト内・外部パッケージならNone)"""
        raise NotImplementedError

    def _external_package(self, project: Project, reference: str) -> str:
        """外部パッケージへの参照ならトップレベル名を返す(それ以外は空文字)"""
        raise NotImplementedError
