import os
from os.path import dirname, join

from dotenv import load_dotenv

load_dotenv(verbose=True)

dotenv_path = join(dirname(__file__), ".env")
load_dotenv(dotenv_path)


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        return int(value) if value else default
    except ValueError:
        return default


# workspace(ワークスペース定義ファイル名、ワークスペースルートからの相対パス)
workspace_file = os.getenv("MONODEP_WORKSPACE_FILE", "workspace.json")

# orchestrator(並列ビルド時の最大プロセス数)
max_workers = max(1, _getenv_int("MONODEP_MAX_WORKERS", os.cpu_count() or 1))

# git(差分取得に使うgitコマンド)
git_command = os.getenv("MONODEP_GIT", "git")

# log(空文字ならファイル出力しない)
log_file = os.getenv("MONODEP_LOG_FILE", "monodep.log")
rich_log_file = os.getenv("MONODEP_RICH_LOG_FILE", "")

# mode
is_debug = os.getenv("IS_DEBUG", "False").lower() in ("true", "1", "t")  # デバッグモード(例: IS_DEBUG=True)
