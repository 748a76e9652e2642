import posixpath
from functools import cached_property
from pathlib import Path

import networkx as nx

from monodep.analyzer.dependency_map.dependency_manager_base import find_overlapping_roots
from monodep.analyzer.dependency_map.python.dependency_manager_py import DependencyManagerPy
from monodep.core.workspace_loader import ManifestInfo, WorkspaceConfigLoader, canonicalize_name
from monodep.schema.schema import IntegrityViolation, ProjectKind, ViolationGroup, WorkspaceConfig
from monodep.utils.file_util import FileUtil
from monodep.utils.log_util import log, log_inout

CATEGORY_MISSING_ROOT = "missing-project-root"
CATEGORY_ORPHAN_FILE = "orphan-file"
CATEGORY_OVERLAPPING_ROOTS = "overlapping-roots"
CATEGORY_UNDECLARED_DEPENDENCY = "undeclared-dependency"
CATEGORY_NAMING = "naming-convention"
CATEGORY_CIRCULAR_DEPENDENCY = "circular-dependency"

HEADERS = {
    CATEGORY_MISSING_ROOT: "次のプロジェクトにはファイルがありません",
    CATEGORY_ORPHAN_FILE: "次のファイルはどのプロジェクトにも属していません",
    CATEGORY_OVERLAPPING_ROOTS: "次のファイルは複数のプロジェクトに属しています",
    CATEGORY_UNDECLARED_DEPENDENCY: "次の外部パッケージは依存マニフェストに宣言されていません",
    CATEGORY_NAMING: "次のプロジェクトは命名規約に違反しています",
    CATEGORY_CIRCULAR_DEPENDENCY: "次のプロジェクト間に循環依存があります",
}


class WorkspaceIntegrityChecker:
    """宣言(workspace.json)・ファイル配置・依存マニフェストの整合性を検査する

    全ての検査を必ず実行し(途中で止めない)、違反を見出しごとにまとめて返す。
    想定内の構造上の問題は例外にしない。例外になるのは設定が読めない場合(ConfigError)だけ。
    """

    def __init__(
        self,
        workspace_root: str | Path,
        config: WorkspaceConfig,
        files: list[str] | None = None,
        manifest: ManifestInfo | None = None,
    ):
        self.root = Path(workspace_root).resolve()
        self.config = config
        self.projects = sorted(config.projects, key=lambda p: p.name)
        self._files = files
        self._manifest = manifest

    @log_inout
    def run(self) -> list[ViolationGroup]:
        manifest = self._manifest or WorkspaceConfigLoader(self.root).load_manifest(self.config)
        files = self._files if self._files is not None else self.read_all_files_from_apps_and_libs()

        checks = [
            (CATEGORY_MISSING_ROOT, self.project_without_files_check()),
            (CATEGORY_ORPHAN_FILE, self.files_without_projects_check(files)),
            (CATEGORY_OVERLAPPING_ROOTS, self.files_with_multiple_projects_check(files)),
            (CATEGORY_UNDECLARED_DEPENDENCY, self.undeclared_dependencies_check(manifest)),
            (CATEGORY_NAMING, self.naming_convention_check()),
            (CATEGORY_CIRCULAR_DEPENDENCY, self.circular_dependencies_check()),
        ]
        groups = [
            ViolationGroup(header=HEADERS[category], category=category, violations=violations)
            for category, violations in checks
            if violations
        ]
        log("violation groups=%s", [(group.category, len(group.violations)) for group in groups])
        return groups

    def read_all_files_from_apps_and_libs(self) -> list[str]:
        files = []
        for tree in sorted({self.config.apps_dir, self.config.libs_dir}):
            for path in FileUtil.iter_files(self.root / tree):
                files.append(path.relative_to(self.root).as_posix())
        return files

    def project_without_files_check(self) -> list[IntegrityViolation]:
        violations = []
        for project in self.projects:
            root_dir = self.root / project.root
            if not root_dir.is_dir():
                message = f"プロジェクト '{project.name}' のルート '{project.root}' が見つかりません"
            elif next(FileUtil.iter_files(root_dir), None) is None:
                message = f"プロジェクト '{project.name}' のルート '{project.root}' にファイルがありません"
            else:
                continue
            violations.append(IntegrityViolation(category=CATEGORY_MISSING_ROOT, message=message))
        return violations

    def files_without_projects_check(self, files: list[str]) -> list[IntegrityViolation]:
        return [
            IntegrityViolation(category=CATEGORY_ORPHAN_FILE, message=file)
            for file in sorted(files)
            if not any(project.contains(file) for project in self.projects)
        ]

    def files_with_multiple_projects_check(self, files: list[str]) -> list[IntegrityViolation]:
        violations = []
        for file in sorted(files):
            owners = [project.name for project in self.projects if project.contains(file)]
            if len(owners) > 1:
                message = f"{file} ({', '.join(owners)})"
                violations.append(IntegrityViolation(category=CATEGORY_OVERLAPPING_ROOTS, message=message))
        return violations

    def undeclared_dependencies_check(self, manifest: ManifestInfo) -> list[IntegrityViolation]:
        if self._dependency_manager is None:
            return []

        violations = []
        for package, importers in sorted(self._dependency_manager.external_references().items()):
            distribution = self.config.package_modules.get(package, package)
            if manifest.declares(distribution):
                continue
            importer_list = ", ".join(sorted(importers))
            message = f"'{canonicalize_name(distribution)}' ({importer_list})"
            violations.append(IntegrityViolation(category=CATEGORY_UNDECLARED_DEPENDENCY, message=message))
        return violations

    def naming_convention_check(self) -> list[IntegrityViolation]:
        violations = []
        for project in self.projects:
            expected_dir = self.config.apps_dir if project.kind == ProjectKind.APP else self.config.libs_dir
            basename = posixpath.basename(project.root)
            if basename.replace("-", "_") != project.module_name:
                message = f"プロジェクト名 '{project.name}' がルートのディレクトリ名 '{basename}' と一致しません"
                violations.append(IntegrityViolation(category=CATEGORY_NAMING, message=message))
            if not project.root.startswith(expected_dir + "/"):
                message = f"{project.kind} '{project.name}' のルート '{project.root}' が '{expected_dir}/' の配下にありません"
                violations.append(IntegrityViolation(category=CATEGORY_NAMING, message=message))
            if not project.module_name.isidentifier():
                message = f"プロジェクト名 '{project.name}' はPythonのモジュール名として使えません"
                violations.append(IntegrityViolation(category=CATEGORY_NAMING, message=message))

        for module, name in sorted(self.config.aliases.items()):
            if self.config.get_project(name) is None:
                message = f"エイリアス '{module}' の参照先プロジェクト '{name}' が宣言されていません"
                violations.append(IntegrityViolation(category=CATEGORY_NAMING, message=message))
        return violations

    def circular_dependencies_check(self) -> list[IntegrityViolation]:
        if self._dependency_manager is None:
            return []

        graph = self._dependency_manager.build()
        violations = []
        for cycle in sorted(self._normalize_cycle(cycle) for cycle in nx.simple_cycles(graph.nx_graph)):
            message = " -> ".join([*cycle, cycle[0]])
            violations.append(IntegrityViolation(category=CATEGORY_CIRCULAR_DEPENDENCY, message=message))
        return violations

    @cached_property
    def _dependency_manager(self) -> DependencyManagerPy | None:
        """依存解析用のマネージャ(ルートが重複している場合は参照元が一意に決まらないのでNone)

        未宣言のプロジェクトを指すエイリアスは命名規約の検査で報告するので、ここでは解析対象から外す。
        ルートが無いプロジェクトはファイルが無いものとして扱う。
        """
        if find_overlapping_roots(self.projects):
            log("skip dependency checks: overlapping roots")
            return None

        names = {project.name for project in self.config.projects}
        aliases = {module: name for module, name in self.config.aliases.items() if name in names}
        config = self.config.model_copy(update={"aliases": aliases})
        return DependencyManagerPy(self.root, config)

    @staticmethod
    def _normalize_cycle(cycle: list[str]) -> list[str]:
        # 出力を安定させるため、名前が最小のノードから始まるように回転する
        start = cycle.index(min(cycle))
        return cycle[start:] + cycle[:start]
