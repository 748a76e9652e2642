from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import networkx as nx

from monodep.schema.schema import Project, ProjectKind

# 変更ファイル一覧(重複なし、入力順を保持)
ChangeSet = tuple[str, ...]


@dataclass
class SourceFileMetadata:
    path: str  # ワークスペース相対パス
    project: str
    references: set[str] = field(default_factory=set)
    dependencies: set[str] = field(default_factory=set)  # 参照しているプロジェクト名


class ProjectGraph:
    """プロジェクト間の依存グラフ("from は to に依存する" の有向辺)

    呼び出しごとに作り直す値オブジェクト。構築後は変更しない。
    """

    def __init__(self, projects: Iterable[Project], edges: Iterable[tuple[str, str]] = ()):
        self._nodes: dict[str, Project] = {project.name: project for project in projects}
        self.nx_graph = nx.DiGraph()
        self.nx_graph.add_nodes_from(sorted(self._nodes))
        for source, target in sorted(set(edges)):
            if source not in self._nodes or target not in self._nodes:
                msg = f"edge endpoint is not a declared project: {source} -> {target}"
                raise ValueError(msg)
            if source == target:
                continue
            self.nx_graph.add_edge(source, target)
        self.nx_graph = nx.freeze(self.nx_graph)

    @property
    def nodes(self) -> Mapping[str, Project]:
        return MappingProxyType(self._nodes)

    @property
    def edges(self) -> set[tuple[str, str]]:
        return set(self.nx_graph.edges())

    def dependencies(self, name: str) -> list[str]:
        """name が依存しているプロジェクト"""
        return sorted(self.nx_graph.successors(name))

    def dependents(self, name: str) -> list[str]:
        """name に依存しているプロジェクト"""
        return sorted(self.nx_graph.predecessors(name))

    def names(self, kind: ProjectKind | None = None) -> list[str]:
        return sorted(name for name, project in self._nodes.items() if kind is None or project.kind == kind)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


@dataclass(frozen=True)
class ChangeImpactResult:
    touched: tuple[str, ...]
    affected: tuple[str, ...]
    affected_apps: tuple[str, ...]
    affected_libs: tuple[str, ...]
    workspace_wide: bool = False  # どのプロジェクトにも属さない変更があり全プロジェクトが対象になった
