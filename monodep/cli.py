import argparse
import signal
import sys
import threading

import monodep
from monodep.analyzer.dependency_map.change_impact_analyzer import ChangeImpactAnalyzer
from monodep.analyzer.dependency_map.dependency_types import ChangeImpactResult, ProjectGraph
from monodep.analyzer.dependency_map.dependency_visualizer import DependencyVisualizer
from monodep.analyzer.dependency_map.python.dependency_manager_py import DependencyManagerPy
from monodep.core.change_set_resolver import ChangeSetResolver
from monodep.core.command_orchestrator import CommandOrchestrator
from monodep.core.integrity_checker import WorkspaceIntegrityChecker
from monodep.core.workspace_loader import WorkspaceConfigLoader
from monodep.errors import MonodepError, SourceControlError
from monodep.schema.schema import AffectedOptions, DepGraphOptions, LintOptions, WorkspaceConfig
from monodep.utils.log_util import log
from monodep.utils.rich_console import (
    console_print_all,
    display_build_report,
    display_error,
    display_violation_groups,
    error_print_all,
    run_function_with_spinner,
)

AFFECTED_COMMANDS = ["apps", "libs", "build", "e2e", "dep-graph"]
ORCHESTRATED_COMMANDS = ["build", "e2e"]


def build_graph(workspace: str, config: WorkspaceConfig) -> ProjectGraph:
    return run_function_with_spinner("依存グラフを構築中...", DependencyManagerPy(workspace, config).build)


def write_graph(graph: ProjectGraph, output_file: str, affected: tuple[str, ...] | None = None) -> int:
    if not output_file:
        print(DependencyVisualizer.to_json(graph, affected))
        return 0
    try:
        output_path = DependencyVisualizer.create_diagram(graph, output_file, affected)
    except ImportError as e:
        error_print_all(f"[red]エラー: dot形式の出力には pygraphviz が必要です ({e})[/red]")
        return 1
    console_print_all(f"依存グラフを出力しました: {output_path}")
    return 0


class Command:
    """サブコマンドの共通インターフェース(name, description, run(argv) -> 終了コード)"""

    name = ""
    description = ""

    def run(self, argv: list[str]) -> int:
        raise NotImplementedError


class AffectedCommand(Command):
    name = "affected"
    description = "変更の影響を受けるプロジェクトを求め、アプリのビルド・e2eを実行します"

    def parse_options(self, argv: list[str]) -> AffectedOptions:
        # "--" 以降は外部ビルドツールにそのまま渡す
        passthrough: list[str] = []
        if "--" in argv:
            index = argv.index("--")
            argv, passthrough = argv[:index], argv[index + 1 :]

        parser = argparse.ArgumentParser(prog="monodep affected", description=self.description)
        parser.add_argument("command", choices=AFFECTED_COMMANDS, help="実行するコマンド")
        parser.add_argument("revisions", nargs="*", help="比較するリビジョン(SHA1 SHA2)")
        parser.add_argument("--files", default="", help="カンマ区切りの変更ファイル一覧")
        parser.add_argument(
            "--parallel", action=argparse.BooleanOptionalAction, default=False, help="ビルドを並列実行する"
        )
        parser.add_argument("--max-workers", type=int, default=None, help="並列実行時の最大プロセス数")
        parser.add_argument("--file", dest="output_file", default="", help="dep-graphの出力ファイル(.json/.dot)")
        parser.add_argument("--workspace", default=".", help="ワークスペースのルートディレクトリ")
        args, rest = parser.parse_known_args(argv)

        if len(args.revisions) not in (0, 2):
            msg = f"リビジョンは2つ指定してください: {' '.join(args.revisions)}"
            raise SourceControlError(msg)
        base, head = args.revisions if args.revisions else ("", "")

        return AffectedOptions(
            workspace=args.workspace,
            command=args.command,
            files=args.files,
            base=base,
            head=head,
            parallel=args.parallel,
            max_workers=args.max_workers,
            output_file=args.output_file,
            rest=[*rest, *passthrough],
        )

    def run(self, argv: list[str]) -> int:
        try:
            options = self.parse_options(argv)
            config = WorkspaceConfigLoader(options.workspace).load()
            change_set = ChangeSetResolver(options.workspace).resolve(
                files=options.files or None, base=options.base, head=options.head
            )
            graph = build_graph(options.workspace, config)
        except MonodepError as e:
            display_error(e)
            return 1

        impact = ChangeImpactAnalyzer(graph, config).analyze(change_set)
        log("impact=%s", impact)

        if options.command == "apps":
            print(" ".join(impact.affected_apps))
            return 0
        if options.command == "libs":
            print(" ".join(impact.affected_libs))
            return 0
        if options.command == "dep-graph":
            return write_graph(graph, options.output_file, impact.affected)
        return self.run_orchestrated(options, config, impact)

    @staticmethod
    def run_orchestrated(options: AffectedOptions, config: WorkspaceConfig, impact: ChangeImpactResult) -> int:
        apps = list(impact.affected_apps)
        if apps:
            mode = "並列" if options.parallel else "逐次"
            console_print_all(f"{options.command} ({mode}): {', '.join(apps)}")
        orchestrator = CommandOrchestrator(options.workspace, config, max_workers=options.max_workers)
        report = orchestrator.run(apps, options.command, options.rest, parallel=options.parallel)
        display_build_report(report)
        return report.exit_code


class DepGraphCommand(Command):
    name = "dep-graph"
    description = "プロジェクトの依存グラフを出力します"

    def parse_options(self, argv: list[str]) -> DepGraphOptions:
        parser = argparse.ArgumentParser(prog="monodep dep-graph", description=self.description)
        parser.add_argument("--file", dest="output_file", default="", help="出力ファイル(.json/.dot)")
        parser.add_argument("--workspace", default=".", help="ワークスペースのルートディレクトリ")
        args = parser.parse_args(argv)
        return DepGraphOptions(workspace=args.workspace, output_file=args.output_file)

    def run(self, argv: list[str]) -> int:
        options = self.parse_options(argv)
        try:
            config = WorkspaceConfigLoader(options.workspace).load()
            graph = build_graph(options.workspace, config)
        except MonodepError as e:
            display_error(e)
            return 1
        return write_graph(graph, options.output_file)


class LintCommand(Command):
    name = "lint"
    description = "ワークスペースの整合性(ファイル配置・依存宣言・命名規約)を検査します"

    def parse_options(self, argv: list[str]) -> LintOptions:
        parser = argparse.ArgumentParser(prog="monodep lint", description=self.description)
        parser.add_argument("--workspace", default=".", help="ワークスペースのルートディレクトリ")
        args = parser.parse_args(argv)
        return LintOptions(workspace=args.workspace)

    def run(self, argv: list[str]) -> int:
        options = self.parse_options(argv)
        try:
            config = WorkspaceConfigLoader(options.workspace).load(check_roots=False)
            groups = WorkspaceIntegrityChecker(options.workspace, config).run()
        except MonodepError as e:
            display_error(e)
            return 1
        display_violation_groups(groups)
        return 1 if groups else 0


# コマンド名 => コマンド(起動時に一度だけ作る固定の表)
COMMANDS: dict[str, Command] = {command.name: command for command in (AffectedCommand(), DepGraphCommand(), LintCommand())}


def main(argv: list[str] | None = None) -> int:
    """メイン処理(コマンドを選んで実行し、終了コードを返す)"""
    argv = sys.argv[1:] if argv is None else list(argv)
    log("========================================")
    log("||         monodep cli start          ||")
    log("========================================")
    log("argv=%s", argv)

    if not argv or argv[0] in ("-h", "--help"):
        show_usage()
        return 0 if argv else 1
    if argv[0] in ("-v", "--version"):
        print(f"monodep version {monodep.__version__}")
        return 0

    command = COMMANDS.get(argv[0])
    if command is None:
        print(f"\033[31mエラー: 不明なコマンドです: '{argv[0]}'\033[0m", file=sys.stderr)
        show_usage()
        return 1

    previous_handler = _install_sigterm_handler()
    try:
        return command.run(argv[1:])
    except SystemExit as e:
        # argparseの入力エラーは1にそろえる(-h/--helpは0)
        return 1 if e.code else 0
    except KeyboardInterrupt:
        error_print_all("[red]中断しました[/red]")
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt


def _install_sigterm_handler():
    # SIGTERMでもCtrl-Cと同じく子プロセスを止めてから終了する
    if threading.current_thread() is not threading.main_thread():
        return None
    return signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)


def show_usage():
    print("\033[92m使用方法: monodep <command> [オプション]\033[0m")
    for command in COMMANDS.values():
        print(f"  {command.name:<10} {command.description}")
    print('\033[33m例1:\033[0m monodep affected apps --files="libs/core/models.py"')
    print("  説明: libs/core の変更で影響を受けるアプリを表示します。")
    print("\033[33m例2:\033[0m monodep affected build origin/main HEAD --parallel -- --verbose")
    print("  説明: origin/main と HEAD の差分で影響を受けるアプリを並列にビルドします。")
    print("\033[33m例3:\033[0m monodep lint")
    print("  説明: ファイル配置・依存宣言・命名規約を検査します。")
