from monodep.analyzer.dependency_map.dependency_manager_base import find_overlapping_roots, find_owner
from monodep.analyzer.dependency_map.python.dependency_manager_py import DependencyManagerPy
from monodep.errors import ResolutionError
from monodep.schema.schema import Project, ProjectKind
from tests.unit_tests.helper import BaseTestCase


class TestDependencyManagerPy(BaseTestCase):
    def test_build_sample_workspace(self):
        config = self.workspace.create_sample_workspace()
        graph = DependencyManagerPy(self.root, config).build()

        self.assertEqual(["core", "utils", "web"], graph.names())
        self.assertEqual({("web", "core"), ("core", "utils")}, graph.edges)
        self.assertEqual(["core"], graph.dependencies("web"))
        self.assertEqual(["web"], graph.dependents("core"))
        self.assertEqual(["web"], graph.names(ProjectKind.APP))
        self.assertEqual(3, len(graph))
        self.assertIn("utils", graph)

    def test_build_is_repeatable(self):
        # 呼び出しごとにゼロから作り直す
        config = self.workspace.create_sample_workspace()
        manager = DependencyManagerPy(self.root, config)
        first = manager.build()
        self.workspace.write("libs/utils/extra.py", "import core\n")
        second = DependencyManagerPy(self.root, config).build()
        self.assertEqual({("web", "core"), ("core", "utils")}, first.edges)
        self.assertEqual({("web", "core"), ("core", "utils"), ("utils", "core")}, second.edges)

    def test_alias_longest_prefix(self):
        self.workspace.add_project("web", "app")
        self.workspace.add_project("core", "lib")
        self.workspace.add_project("ui", "lib")
        self.workspace.write("apps/web/main.py", "import shared.widgets.button\nimport shared.models\n")
        self.workspace.write("libs/core/models.py", "")
        self.workspace.write("libs/ui/button.py", "")
        self.workspace.write_config(aliases={"shared": "core", "shared.widgets": "ui"})
        graph = DependencyManagerPy(self.root, self.workspace.load()).build()
        self.assertEqual({("web", "core"), ("web", "ui")}, graph.edges)

    def test_scope(self):
        self.workspace.add_project("web", "app")
        self.workspace.add_project("core", "lib")
        self.workspace.write("apps/web/main.py", "from acme.core import models\nimport core\n")
        self.workspace.write("libs/core/models.py", "")
        self.workspace.write_config(scope="acme")
        graph = DependencyManagerPy(self.root, self.workspace.load()).build()
        self.assertEqual({("web", "core")}, graph.edges)

    def test_hyphenated_project_name(self):
        self.workspace.add_project("web", "app")
        self.workspace.add_project("data-access", "lib")
        self.workspace.write("apps/web/main.py", "import data_access\n")
        self.workspace.write("libs/data-access/repo.py", "")
        self.workspace.write_config()
        graph = DependencyManagerPy(self.root, self.workspace.load()).build()
        self.assertEqual({("web", "data-access")}, graph.edges)

    def test_local_module_shadows_project(self):
        # apps/web/helpers.py があれば import helpers はプロジェクト内の参照
        self.workspace.add_project("web", "app")
        self.workspace.add_project("helpers", "lib")
        self.workspace.write("apps/web/main.py", "import helpers\nfrom helpers import format_name\n")
        self.workspace.write("apps/web/helpers.py", "def format_name():\n    pass\n")
        self.workspace.write("libs/helpers/text.py", "")
        self.workspace.write_config()
        graph = DependencyManagerPy(self.root, self.workspace.load()).build()
        self.assertEqual(set(), graph.edges)

    def test_nested_directory_does_not_shadow_project(self):
        # トップレベルでないディレクトリ名(libs/core/models/utils)はimport名にならない
        self.workspace.add_project("core", "lib")
        self.workspace.add_project("utils", "lib")
        self.workspace.write("libs/core/models/utils/__init__.py", "")
        self.workspace.write("libs/core/service.py", "import utils\n")
        self.workspace.write("libs/utils/strings.py", "")
        self.workspace.write_config()
        graph = DependencyManagerPy(self.root, self.workspace.load()).build()
        self.assertEqual({("core", "utils")}, graph.edges)

    def test_src_layout_modules_are_local(self):
        config = self.workspace.create_sample_workspace()
        self.workspace.write("libs/utils/src/textkit/__init__.py", "")
        self.workspace.write("libs/utils/cli.py", "import textkit\n")
        external = DependencyManagerPy(self.root, config).external_references()
        self.assertNotIn("textkit", external)

    def test_syntax_error_file_is_skipped(self):
        config = self.workspace.create_sample_workspace()
        self.workspace.write("apps/web/broken.py", "import utils\ndef broken(:\n")
        graph = DependencyManagerPy(self.root, config).build()
        self.assertEqual({("web", "core"), ("core", "utils")}, graph.edges)

    def test_overlapping_roots(self):
        self.workspace.add_project("core", "lib")
        self.workspace.add_project("core-ext", "lib", root="libs/core/ext")
        self.workspace.write_config()
        with self.assertRaises(ResolutionError):
            DependencyManagerPy(self.root, self.workspace.load()).build()

    def test_alias_to_unknown_project(self):
        self.workspace.add_project("core", "lib")
        self.workspace.write_config(aliases={"shared": "missing"})
        with self.assertRaises(ResolutionError):
            DependencyManagerPy(self.root, self.workspace.load()).build()

    def test_external_references(self):
        config = self.workspace.create_sample_workspace()
        self.workspace.write("apps/web/api.py", "from __future__ import annotations\nimport requests\nimport views\n")
        manager = DependencyManagerPy(self.root, config)
        external = manager.external_references()
        # 標準ライブラリ・プロジェクト内のモジュール(views)は含めない
        self.assertEqual({"rich": {"apps/web/main.py"}, "requests": {"apps/web/api.py"}}, external)

    def test_project_for_path(self):
        config = self.workspace.create_sample_workspace()
        manager = DependencyManagerPy(self.root, config)
        self.assertEqual("core", manager.project_for_path("libs/core/models.py").name)
        self.assertIsNone(manager.project_for_path("libs/coreutils/x.py"))


def test_find_overlapping_roots():
    projects = [
        Project(name="a", kind="lib", root="libs/a"),
        Project(name="b", kind="lib", root="libs/a/b"),
        Project(name="ab", kind="lib", root="libs/ab"),
    ]
    overlaps = find_overlapping_roots(projects)
    assert [(first.name, second.name) for first, second in overlaps] == [("a", "b")]


def test_find_owner_longest_prefix():
    projects = [Project(name="a", kind="lib", root="libs/a"), Project(name="b", kind="lib", root="libs/a/b")]
    assert find_owner(projects, "libs/a/b/x.py").name == "b"
    assert find_owner(projects, "libs/a/x.py").name == "a"
    assert find_owner(projects, "README.md") is None
