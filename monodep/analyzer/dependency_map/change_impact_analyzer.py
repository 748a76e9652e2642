from collections import deque
from collections.abc import Iterable
from fnmatch import fnmatchcase

from monodep.analyzer.dependency_map.dependency_manager_base import find_owner
from monodep.analyzer.dependency_map.dependency_types import ChangeImpactResult, ChangeSet, ProjectGraph
from monodep.schema.schema import ProjectKind, WorkspaceConfig
from monodep.utils.log_util import log, log_inout


class ChangeImpactAnalyzer:
    """変更ファイルから影響を受けるプロジェクトを求める

    依存グラフは参照するだけで変更しない((graph, change_set) の純粋関数)。
    """

    def __init__(self, graph: ProjectGraph, config: WorkspaceConfig | None = None):
        self.graph = graph
        self.projects = list(graph.nodes.values())
        self.implicit_ignore = list(config.implicit_ignore) if config else []

    @log_inout
    def analyze(self, change_set: ChangeSet) -> ChangeImpactResult:
        """変更の影響範囲を分析"""
        touched, workspace_wide = self._touched_projects(change_set)
        affected = self.affected_projects(touched)
        return ChangeImpactResult(
            touched=tuple(sorted(touched)),
            affected=tuple(sorted(affected)),
            affected_apps=tuple(self._filter_kind(affected, ProjectKind.APP)),
            affected_libs=tuple(self._filter_kind(affected, ProjectKind.LIB)),
            workspace_wide=workspace_wide,
        )

    def touched_projects(self, change_set: ChangeSet) -> frozenset[str]:
        return self._touched_projects(change_set)[0]

    def affected_projects(self, touched: Iterable[str]) -> frozenset[str]:
        """touched とそれに(推移的に)依存する全プロジェクト

        逆向きの辺を幅優先でたどる。訪問済み集合があるので循環があっても終了する。
        """
        visited = set()
        queue = deque()
        for name in sorted(touched):
            if name not in self.graph:
                continue
            visited.add(name)
            queue.append(name)

        while queue:
            name = queue.popleft()
            for dependent in self.graph.dependents(name):
                if dependent not in visited:
                    visited.add(dependent)
                    queue.append(dependent)
        return frozenset(visited)

    def affected_apps(self, change_set: ChangeSet) -> list[str]:
        return list(self.analyze(change_set).affected_apps)

    def affected_libs(self, change_set: ChangeSet) -> list[str]:
        return list(self.analyze(change_set).affected_libs)

    def _touched_projects(self, change_set: ChangeSet) -> tuple[frozenset[str], bool]:
        touched = set()
        for path in change_set:
            owner = find_owner(self.projects, path)
            if owner:
                touched.add(owner.name)
            elif self._is_ignored(path):
                log("ignored workspace file=%s", path)
            else:
                # どのプロジェクトにも属さないファイル(ルートのマニフェストなど)は全プロジェクトに影響するとみなす
                log("workspace-wide change=%s", path)
                return frozenset(self.graph.nodes), True
        return frozenset(touched), False

    def _is_ignored(self, path: str) -> bool:
        return any(fnmatchcase(path, pattern) for pattern in self.implicit_ignore)

    def _filter_kind(self, names: Iterable[str], kind: ProjectKind) -> list[str]:
        return sorted(name for name in names if self.graph.nodes[name].kind == kind)
