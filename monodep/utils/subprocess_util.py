import shlex
import subprocess

import anyio

from monodep.utils.log_util import log


class SubprocessUtil:
    """外部コマンド(git, ビルドツール)の実行

    シェルは経由せず、引数はリストで渡す。
    """

    CompletedProcess = subprocess.CompletedProcess
    CalledProcessError = subprocess.CalledProcessError

    @staticmethod
    def join(args: list[str]) -> str:
        # 表示用(コピーしてそのままシェルに貼れる形)
        return shlex.join(args)

    @staticmethod
    def run(
        args: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        *,
        text: bool = True,
        capture_output: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """
        コマンドを同期実行します。

        引数:
            args: 実行するコマンドと引数
            cwd: 作業ディレクトリ(ワークスペースのルートなど)
            env: 環境変数(Noneなら引き継ぐ)
            timeout: 秒数。超えたらTimeoutExpired
            text: Trueならstdout/stderrをUTF-8の文字列にする
            capture_output: Trueならstdout/stderrをキャプチャする。Falseなら呼び出し元の端末にそのまま出力する
            check: Trueなら終了コードが0以外のときCalledProcessError

        例外:
            FileNotFoundError: コマンドが見つからない
            subprocess.CalledProcessError: check=True で失敗した
        """
        log("run args=%s, cwd=%s", args, cwd)
        return subprocess.run(  # noqa: S603
            args,
            cwd=cwd,
            env=env,
            timeout=timeout,
            capture_output=capture_output,
            text=text,
            encoding="utf-8" if text else None,
            check=check,
        )

    @staticmethod
    async def run_async(
        args: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess:
        """
        コマンドを非同期に実行し、stderrをstdoutにまとめてキャプチャします。

        終了コードが0以外でも例外にはしない(呼び出し元で結果を集める)。
        キャンセルされると実行中のプロセスはanyioがkillする。
        """
        log("run_async args=%s, cwd=%s", args, cwd)
        result = await anyio.run_process(args, cwd=cwd, env=env, check=False, stderr=subprocess.STDOUT)
        return subprocess.CompletedProcess(
            args=args,
            returncode=result.returncode,
            stdout=result.stdout.decode("utf-8", errors="replace"),
        )
