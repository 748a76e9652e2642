import sys
from functools import cached_property

from monodep.analyzer.dependency_map.ast_util import extract_module_references, top_level_name
from monodep.analyzer.dependency_map.dependency_manager_base import DependencyManagerBase
from monodep.schema.schema import Project
from monodep.utils.file_util import FileUtil

# 標準ライブラリ扱いするモジュール(sys.stdlib_module_namesに無いもの)
EXTRA_BUILTIN_MODULES = {"__future__", "__main__"}


class DependencyManagerPy(DependencyManagerBase):
    """Pythonのimport文からプロジェクト間の依存関係を抽出する

    参照先プロジェクトの解決順:
      1. 相対import => 同一プロジェクト
      2. エイリアス表(aliases) => モジュール名の前方一致で最長のもの
      3. 命名規約 => (scope を除いた)先頭の名前がプロジェクトの module_name と一致
      4. それ以外 => 外部パッケージ(グラフには含めない)
    """

    source_ext = ".py"

    def _extract_references(self, content: str, file_name: str) -> set[str]:
        return extract_module_references(content, file_name)

    @cached_property
    def _projects_by_module(self) -> dict[str, str]:
        return {project.module_name: project.name for project in self.projects}

    @cached_property
    def _local_modules(self) -> dict[str, set[str]]:
        # プロジェクトのルート(またはsrc/)直下でトップレベルとしてimportされうる名前(.pyのファイル名とディレクトリ名)
        local_modules: dict[str, set[str]] = {}
        for project in self.projects:
            names = set()
            for file_path in FileUtil.iter_files(self.root / project.root, self.source_ext):
                rel_parts = file_path.relative_to(self.root / project.root).parts
                if rel_parts[0] == "src" and len(rel_parts) > 1:
                    rel_parts = rel_parts[1:]
                names.add(rel_parts[0] if len(rel_parts) > 1 else file_path.stem)
            local_modules[project.name] = names
        return local_modules

    def _resolve_reference(self, project: Project, reference: str) -> str | None:
        if reference.startswith(".") or top_level_name(reference) in self._local_modules.get(project.name, set()):
            # 相対import、またはプロジェクト内のトップレベルモジュール
            return project.name

        alias_target = self._resolve_alias(reference)
        if alias_target:
            return alias_target

        return self._resolve_naming_convention(reference)

    def _resolve_alias(self, reference: str) -> str | None:
        best_module = ""
        best_target = None
        for module, project_name in self.config.aliases.items():
            if (reference == module or reference.startswith(module + ".")) and len(module) > len(best_module):
                best_module, best_target = module, project_name
        return best_target

    def _resolve_naming_convention(self, reference: str) -> str | None:
        scope = self.config.scope
        if scope:
            if not reference.startswith(scope + "."):
                return None
            reference = reference[len(scope) + 1 :]
        return self._projects_by_module.get(top_level_name(reference))

    def _external_package(self, project: Project, reference: str) -> str:
        if reference.startswith("."):
            return ""
        if self._resolve_reference(project, reference):
            return ""

        package = top_level_name(reference)
        if package in sys.stdlib_module_names or package in EXTRA_BUILTIN_MODULES:
            return ""
        if self.config.scope and package == self.config.scope:
            return ""
        if package in self._local_modules.get(project.name, set()):
            return ""
        return package
