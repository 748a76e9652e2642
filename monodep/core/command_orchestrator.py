import signal
import sys
import threading
from collections.abc import Sequence
from pathlib import Path

import anyio
from tqdm import tqdm

from monodep import settings
from monodep.schema.schema import BuildReport, ProcessResult, WorkspaceConfig
from monodep.utils.log_util import log, log_e, log_i, log_progress, log_w
from monodep.utils.rich_console import console_print_all
from monodep.utils.subprocess_util import SubprocessUtil

# コマンドが見つからない場合の終了コード(シェルと同じ)
RETURNCODE_COMMAND_NOT_FOUND = 127


class CommandOrchestrator:
    """影響を受けるアプリごとに外部のビルド/テストコマンドを実行する

    - 逐次実行: 入力順に1つずつ実行し、最初の失敗で止める(標準入出力は引き継ぐ)
    - 並列実行: max_workers 個までのプロセスを同時に実行し、全ての結果を集める(出力はキャプチャ)
    自動リトライはしない。
    """

    def __init__(self, workspace_root: str | Path, config: WorkspaceConfig, max_workers: int | None = None):
        self.root = Path(workspace_root).resolve()
        self.config = config
        self.max_workers = max(1, max_workers or settings.max_workers)

    def build_command(self, app: str, target: str, args: Sequence[str] = ()) -> list[str]:
        project = self.config.get_project(app)
        root = project.root if project else app
        command = []
        for part in self.config.command_template(target):
            part = part.replace("{app}", app).replace("{root}", root).replace("{target}", target)
            command.append(part)
        return [*command, *args]

    def run(
        self, apps: Sequence[str], target: str, args: Sequence[str] = (), *, parallel: bool = False
    ) -> BuildReport:
        apps = list(apps)
        if not apps:
            log_i("no apps to %s", target)
            return BuildReport(target=target, parallel=parallel)
        if parallel:
            return self.run_parallel(apps, target, args)
        return self.run_sequential(apps, target, args)

    def run_sequential(self, apps: list[str], target: str, args: Sequence[str] = ()) -> BuildReport:
        report = BuildReport(target=target, parallel=False, apps=apps)
        for app in apps:
            command = self.build_command(app, target, args)
            console_print_all(f"[bold cyan]> {SubprocessUtil.join(command)}[/bold cyan]", markup=True)
            try:
                # 出力はキャプチャせず呼び出し元の標準入出力にそのまま流す
                completed = SubprocessUtil.run(command, cwd=str(self.root), check=False, text=False)
                result = ProcessResult(app=app, command=command, returncode=completed.returncode)
            except FileNotFoundError as e:
                log_e("command not found: %s", command[0])
                result = ProcessResult(app=app, command=command, returncode=RETURNCODE_COMMAND_NOT_FOUND, output=str(e))
            report.results.append(result)
            if not result.succeeded:
                log_w("%s %s failed (returncode=%d), stop", target, app, result.returncode)
                break
        return report

    def run_parallel(self, apps: list[str], target: str, args: Sequence[str] = ()) -> BuildReport:
        report = BuildReport(target=target, parallel=True, apps=apps)
        anyio.run(self._run_parallel_async, report, args)
        return report

    async def _run_parallel_async(self, report: BuildReport, args: Sequence[str]) -> None:
        limiter = anyio.CapacityLimiter(self.max_workers)
        results: dict[str, ProcessResult] = {}
        progress_bar = tqdm(total=len(report.apps), unit="apps", file=sys.stderr, desc=report.target, disable=None)
        try:
            async with anyio.create_task_group() as outer:
                if self._can_watch_signals():
                    outer.start_soon(self._cancel_on_signal, outer.cancel_scope, report)
                async with anyio.create_task_group() as tg:
                    for app in report.apps:
                        tg.start_soon(self._run_one, app, report.target, args, limiter, results, progress_bar)
                # 全プロセスが終わったらシグナル監視も止める
                outer.cancel_scope.cancel()
        finally:
            progress_bar.close()
        # 完了順ではなく入力順に並べる
        report.results = [results[app] for app in report.apps if app in results]

    async def _run_one(
        self,
        app: str,
        target: str,
        args: Sequence[str],
        limiter: anyio.CapacityLimiter,
        results: dict[str, ProcessResult],
        progress_bar: tqdm,
    ) -> None:
        command = self.build_command(app, target, args)
        async with limiter:
            log("start %s", command)
            try:
                completed = await SubprocessUtil.run_async(command, cwd=str(self.root))
                result = ProcessResult(
                    app=app, command=command, returncode=completed.returncode, output=completed.stdout
                )
            except FileNotFoundError as e:
                log_e("command not found: %s", command[0])
                result = ProcessResult(app=app, command=command, returncode=RETURNCODE_COMMAND_NOT_FOUND, output=str(e))
        results[app] = result
        progress_bar.update(1)
        log_progress(progress_bar)

    @staticmethod
    def _can_watch_signals() -> bool:
        # シグナルハンドラはメインスレッドでしか登録できない
        return sys.platform != "win32" and threading.current_thread() is threading.main_thread()

    @staticmethod
    async def _cancel_on_signal(cancel_scope: anyio.CancelScope, report: BuildReport) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                log_w("received signal %s, terminating running processes", signum)
                report.cancelled = True
                # キャンセルすると実行中の子プロセスはanyioがkillする
                cancel_scope.cancel()
                return
