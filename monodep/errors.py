"""monodep の例外定義

設定やgit入力など「処理を継続できない」失敗だけを例外で表現する。
整合性違反(IntegrityViolation)やビルド失敗は値として返すので、ここには含めない。
"""

GUIDANCE_CHANGE_SET = """\
リビジョン範囲を次のように指定してください: monodep affected <command> SHA1 SHA2
またはファイル一覧を次のように指定してください: monodep affected <command> --files="libs/mylib/index.py,libs/mylib2/index.py"\
"""


class MonodepError(Exception):
    """monodep の全ての例外の基底クラス"""


class ConfigError(MonodepError):
    """ワークスペース定義や依存マニフェストが存在しない、または不正"""


class ResolutionError(MonodepError):
    """ワークスペース定義が内部的に矛盾している(プロジェクトルートの重複など)"""


class SourceControlError(MonodepError):
    """リビジョン範囲が不正、または差分の取得に失敗した"""

    def __init__(self, message: str, guidance: str = GUIDANCE_CHANGE_SET):
        super().__init__(message)
        self.guidance = guidance


class ChangeSetError(SourceControlError):
    """明示的に渡されたファイル一覧が不正"""
