import json

from monodep.core.workspace_loader import (
    ManifestInfo,
    WorkspaceConfigLoader,
    canonicalize_name,
    parse_requirement_name,
)
from monodep.errors import ConfigError
from monodep.schema.schema import ProjectKind
from tests.unit_tests.helper import BaseTestCase


class TestWorkspaceConfigLoader(BaseTestCase):
    def test_load_sample_workspace(self):
        config = self.workspace.create_sample_workspace()
        self.assertEqual(["core", "utils", "web"], config.project_names())
        self.assertEqual(ProjectKind.APP, config.get_project("web").kind)
        self.assertEqual(ProjectKind.LIB, config.get_project("core").kind)
        self.assertEqual("libs/utils", config.get_project("utils").root)
        self.assertEqual(frozenset({"scope:shared"}), config.get_project("core").tags)

    def test_load_normalizes_root(self):
        self.workspace.add_project("web", "app", root="apps/web")
        self.workspace.projects[0]["root"] = "./apps/web/"
        self.workspace.write_config()
        config = self.workspace.load()
        self.assertEqual("apps/web", config.get_project("web").root)

    def test_projects(self):
        self.workspace.create_sample_workspace()
        projects = WorkspaceConfigLoader(self.root).projects()
        self.assertEqual({"web", "core", "utils"}, {project.name for project in projects})

    def test_missing_workspace_file(self):
        with self.assertRaises(ConfigError):
            WorkspaceConfigLoader(self.root).load()

    def test_invalid_json(self):
        self.workspace.write("workspace.json", "{ not json")
        with self.assertRaises(ConfigError):
            self.workspace.load()

    def test_unknown_kind(self):
        self.workspace.add_project("web", "app")
        self.workspace.projects[0]["kind"] = "service"
        self.workspace.write_config()
        with self.assertRaises(ConfigError):
            self.workspace.load()

    def test_root_outside_workspace(self):
        self.workspace.add_project("web", "app")
        self.workspace.projects[0]["root"] = "../web"
        self.workspace.write_config()
        with self.assertRaises(ConfigError):
            self.workspace.load()

    def test_duplicate_project_name(self):
        self.workspace.add_project("core", "lib")
        self.workspace.add_project("core", "lib", root="libs/core2")
        self.workspace.write_config()
        with self.assertRaises(ConfigError) as context:
            self.workspace.load()
        self.assertIn("core", str(context.exception))

    def test_missing_project_root(self):
        data = {"projects": [{"name": "web", "kind": "app", "root": "apps/web"}]}
        self.workspace.write("workspace.json", json.dumps(data))
        with self.assertRaises(ConfigError) as context:
            self.workspace.load()
        self.assertIn("apps/web", str(context.exception))

    def test_missing_project_root_without_root_check(self):
        data = {"projects": [{"name": "web", "kind": "app", "root": "apps/web"}]}
        self.workspace.write("workspace.json", json.dumps(data))
        config = WorkspaceConfigLoader(self.root).load(check_roots=False)
        self.assertEqual(["web"], config.project_names())

    def test_custom_workspace_file(self):
        self.workspace.add_project("web", "app")
        self.workspace.write("config/monorepo.json", json.dumps({"projects": self.workspace.projects}))
        config = WorkspaceConfigLoader(self.root, "config/monorepo.json").load()
        self.assertEqual(["web"], config.project_names())


class TestManifest(BaseTestCase):
    def test_load_manifest(self):
        config = self.workspace.create_sample_workspace()
        self.workspace.write_manifest(["rich>=13", "PyYAML>=6"], optional={"test": ["pytest_mock"]})
        manifest = WorkspaceConfigLoader(self.root).load_manifest(config)
        self.assertEqual({"rich", "pyyaml", "pytest-mock"}, manifest.dependencies)
        self.assertTrue(manifest.declares("PyYAML"))
        self.assertTrue(manifest.declares("pytest.mock"))
        self.assertFalse(manifest.declares("requests"))

    def test_missing_manifest(self):
        self.workspace.add_project("web", "app")
        self.workspace.write_config()
        config = self.workspace.load()
        with self.assertRaises(ConfigError):
            WorkspaceConfigLoader(self.root).load_manifest(config)

    def test_broken_manifest(self):
        config = self.workspace.create_sample_workspace()
        self.workspace.write("pyproject.toml", "[project\n")
        with self.assertRaises(ConfigError):
            WorkspaceConfigLoader(self.root).load_manifest(config)

    def test_manifest_without_dependencies(self):
        config = self.workspace.create_sample_workspace()
        self.workspace.write("pyproject.toml", '[project]\nname = "x"\n')
        manifest = WorkspaceConfigLoader(self.root).load_manifest(config)
        self.assertEqual(set(), manifest.dependencies)


def test_parse_requirement_name():
    assert parse_requirement_name("requests[socks]>=2.0; python_version>'3.8'") == "requests"
    assert parse_requirement_name("Django_Rest.Framework==3.0") == "django-rest-framework"
    assert parse_requirement_name("   ") == ""


def test_canonicalize_name():
    assert canonicalize_name("Foo__Bar.baz") == "foo-bar-baz"


def test_manifest_info_declares(tmp_path):
    manifest = ManifestInfo(path=tmp_path / "pyproject.toml", dependencies={"python-dotenv"})
    assert manifest.declares("python_dotenv")
    assert not manifest.declares("dotenv")
