import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from networkx.drawing import nx_agraph

from monodep.analyzer.dependency_map.dependency_types import ProjectGraph
from monodep.schema.schema import ProjectKind
from monodep.utils.file_util import FileUtil
from monodep.utils.log_util import log


class DependencyVisualizer:
    """依存グラフを外部の可視化ツール向けに出力する(グラフの計算はしない)"""

    @staticmethod
    def to_dict(graph: ProjectGraph, affected: Iterable[str] | None = None) -> dict[str, Any]:
        affected_set = set(affected) if affected is not None else None
        nodes = []
        for name in graph.names():
            project = graph.nodes[name]
            node: dict[str, Any] = {"name": name, "kind": str(project.kind), "tags": sorted(project.tags)}
            if affected_set is not None:
                node["affected"] = name in affected_set
            nodes.append(node)
        edges = [{"from": source, "to": target} for source, target in sorted(graph.edges)]
        return {"nodes": nodes, "edges": edges}

    @staticmethod
    def to_json(graph: ProjectGraph, affected: Iterable[str] | None = None) -> str:
        return json.dumps(DependencyVisualizer.to_dict(graph, affected), indent=2, ensure_ascii=False)

    @staticmethod
    def to_dot(graph: ProjectGraph, affected: Iterable[str] | None = None) -> str:
        """graphviz(dot)形式の文字列を生成(pygraphvizが必要)"""
        affected_set = set(affected or ())
        agraph = nx_agraph.to_agraph(graph.nx_graph)
        agraph.graph_attr.update(rankdir="LR")
        agraph.node_attr.update(shape="box")
        for name in graph.names():
            node = agraph.get_node(name)
            project = graph.nodes[name]
            node.attr["label"] = f"{name}\n{project.kind}"
            if project.kind == ProjectKind.LIB:
                node.attr["shape"] = "ellipse"
            if name in affected_set:
                node.attr["style"] = "filled"
                node.attr["fillcolor"] = "#ff8080"
        return agraph.to_string()

    @staticmethod
    def create_diagram(graph: ProjectGraph, output_path: str, affected: Iterable[str] | None = None) -> str:
        """拡張子に応じてJSON(.json)またはdot(.dot/.gv)で保存し、保存先を返す"""
        suffix = Path(output_path).suffix.lower()
        if suffix in (".dot", ".gv"):
            content = DependencyVisualizer.to_dot(graph, affected)
        else:
            content = DependencyVisualizer.to_json(graph, affected)
        log("create_diagram output_path=%s", output_path)
        return FileUtil.write_file(output_path, content)
