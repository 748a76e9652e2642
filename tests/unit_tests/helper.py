import json
import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from typing import Any

from monodep.core.workspace_loader import WorkspaceConfigLoader
from monodep.schema.schema import WorkspaceConfig

DEFAULT_MANIFEST_DEPENDENCIES = ["rich>=13", "PyYAML>=6"]


class WorkspaceFactory:
    """テスト用のワークスペース(workspace.json, pyproject.toml, ソース)を一時ディレクトリに作るクラス"""

    def __init__(self, root: Path):
        self.root = root
        self.projects: list[dict[str, Any]] = []
        self.options: dict[str, Any] = {}

    def add_project(self, name: str, kind: str, root: str = "", tags: list[str] | None = None) -> str:
        if not root:
            root = f"{kind}s/{name}"
        self.projects.append({"name": name, "kind": kind, "root": root, "tags": tags or []})
        (self.root / root).mkdir(parents=True, exist_ok=True)
        return root

    def write(self, rel_path: str, content: str = "") -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def write_config(self, **options: Any) -> Path:
        self.options.update(options)
        data = {**self.options, "projects": self.projects}
        return self.write("workspace.json", json.dumps(data, indent=2))

    def write_manifest(self, dependencies: list[str] | None = None, optional: dict[str, list[str]] | None = None):
        deps = DEFAULT_MANIFEST_DEPENDENCIES if dependencies is None else dependencies
        lines = ["[project]", 'name = "sample-workspace"', f"dependencies = {json.dumps(deps)}"]
        if optional:
            lines.append("")
            lines.append("[project.optional-dependencies]")
            for group, group_deps in optional.items():
                lines.append(f"{group} = {json.dumps(group_deps)}")
        return self.write("pyproject.toml", "\n".join(lines) + "\n")

    def load(self) -> WorkspaceConfig:
        return WorkspaceConfigLoader(self.root).load()

    def create_sample_workspace(self) -> WorkspaceConfig:
        """apps = {web}, libs = {core, utils}、依存は web -> core -> utils"""
        self.add_project("web", "app", tags=["scope:web"])
        self.add_project("core", "lib", tags=["scope:shared"])
        self.add_project("utils", "lib", tags=["scope:shared"])
        self.write("apps/web/main.py", "import rich\nfrom core import models\nfrom . import views\n")
        self.write("apps/web/views.py", "import json\n")
        self.write("libs/core/models.py", "import utils.strings\nfrom .base import Base\n")
        self.write("libs/core/base.py", "class Base:\n    pass\n")
        self.write("libs/utils/strings.py", "import re\n")
        self.write_config()
        self.write_manifest()
        return self.load()


class BaseTestCase(unittest.TestCase):
    def setUp(self):
        # 一時ディレクトリにワークスペースを作る
        self._tmp_dir = tempfile.mkdtemp(prefix="monodep_test_")
        self.root = Path(self._tmp_dir).resolve()
        self.workspace = WorkspaceFactory(self.root)

    def tearDown(self):
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def git(self, *args: str) -> str:
        # テスト用のgitリポジトリ操作(ユーザー設定に依存しないようにする)
        config = ["-c", "user.name=monodep", "-c", "user.email=monodep@example.com", "-c", "commit.gpgsign=false"]
        command = ["git", *config, *args]
        result = subprocess.run(command, cwd=self.root, check=True, capture_output=True, text=True)
        return result.stdout.strip()


def has_git() -> bool:
    return shutil.which("git") is not None
