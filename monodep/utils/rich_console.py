from collections.abc import Callable
from datetime import datetime
from typing import Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from monodep import settings
from monodep.errors import MonodepError, SourceControlError
from monodep.schema.schema import BuildReport, ViolationGroup

# 通常のConsoleオブジェクト(コマンドの結果)
console = Console(width=120)
# エラー・違反の報告用(stderr)
error_console = Console(width=120, stderr=True)
# ファイル出力用のConsoleオブジェクト(MONODEP_RICH_LOG_FILE が指定されたときだけ)
file_console = (
    Console(width=300, file=open(settings.rich_log_file, "a", encoding="utf-8"))  # noqa: SIM115
    if settings.rich_log_file
    else None
)


# loggingのハンドラが使えなそうなので独自のハンドラもどきを作成（RichHandler＋loggerはダメそう）
def console_print_all(*args, **kwargs):
    console.print(*args, **kwargs)
    if file_console:
        file_console.print(*args, **kwargs)


def error_print_all(*args, **kwargs):
    error_console.print(*args, **kwargs)
    if file_console:
        file_console.print(*args, **kwargs)


def run_function_with_spinner(description: str, func: Callable[..., Any], *args, **kwargs) -> Any:
    """
    指定された関数を実行し、その間スピナーを表示します。

    :param description: スピナーに表示する説明
    :param func: 実行する関数
    :param args: 関数に渡す位置引数
    :param kwargs: 関数に渡すキーワード引数
    :return: 関数の戻り値
    """
    with error_console.status(f"[bold green]{description}"):
        return func(*args, **kwargs)


def prepare_table_common(title: str, title_style: str = "bold") -> Table:
    table = Table(title=title, title_style=title_style)

    # ローカルマシンに設定されているタイムゾーンを取得
    local_tz = datetime.now().astimezone().tzinfo
    table.caption = f"取得日時: {datetime.now(tz=local_tz).strftime('%Y-%m-%d %H:%M:%S')}"
    table.caption_justify = "left"
    return table


def display_error(error: MonodepError):
    """
    処理を継続できないエラーを表示します(リビジョン指定の誤りには使い方も添える)。
    """
    body = Text(str(error), style="red")
    if isinstance(error, SourceControlError) and error.guidance:
        body = Group(body, Text(""), Text(error.guidance, style="yellow"))
    error_print_all(Panel(body, title="エラー", border_style="red"))


def display_violation_groups(groups: list[ViolationGroup]):
    """
    整合性チェックの違反を見出しごとに表示します。
    """
    if not groups:
        console_print_all(Panel("整合性の問題は見つかりませんでした", style="green"))
        return

    for group in groups:
        table = prepare_table_common(f"{group.header}:")
        table.add_column("#", style="cyan", no_wrap=True)
        table.add_column(group.category, style="red")
        for i, violation in enumerate(group.violations, start=1):
            table.add_row(str(i), violation.message)
        error_print_all(table)

    total = sum(len(group.violations) for group in groups)
    error_print_all(Panel(f"{total} 件の整合性違反があります", style="red"))


def display_build_report(report: BuildReport):
    """
    ビルド(またはe2e)の結果を表示します。並列実行ではキャプチャした各アプリの出力も表示します。
    """
    if report.skipped:
        console_print_all(Panel(f"{report.target} の対象となるアプリはありません", style="yellow"))
        return

    if report.parallel:
        for result in report.results:
            style = "green" if result.succeeded else "red"
            title = f"{result.app} (exit {result.returncode})"
            console_print_all(Panel(Text(result.output.rstrip() or "(出力なし)"), title=title, border_style=style))

    table = prepare_table_common(f"{report.target} の結果")
    table.add_column("アプリ", style="cyan", no_wrap=True)
    table.add_column("結果")
    table.add_column("終了コード", justify="right")
    for result in report.results:
        status = "[green]成功[/green]" if result.succeeded else "[red]失敗[/red]"
        table.add_row(result.app, status, str(result.returncode))
    for app in report.not_run_apps:
        table.add_row(app, "[yellow]未実行[/yellow]", "-")
    console_print_all(table)

    if report.cancelled:
        error_print_all(Panel(f"{report.target} は中断されました", style="red"))
    elif report.succeeded:
        console_print_all(Panel(f"{report.target} は成功しました", style="green"))
    else:
        error_print_all(Panel(f"{report.target} は失敗しました: {', '.join(report.failed_apps)}", style="red"))
