"""
共通エラー定義

両サービスで共有する例外の分類。
HTTP 層ではステータスコードに変換され、
非同期のメッセージ処理ではログに記録されて吸収される。
"""


class ServiceError(Exception):
    """サービス例外の基底クラス"""


class InvalidArgument(ServiceError):
    """呼び出し側のデータが不変条件を満たさない"""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFound(ServiceError):
    """参照されたエンティティが存在しない"""


class InvalidState(ServiceError):
    """状態遷移ルールに違反する操作"""


class TransportFailure(ServiceError):
    """キューが利用できない、またはアクセスが拒否された"""


class DecodeFailure(ServiceError):
    """メッセージ本文を解釈できない"""
