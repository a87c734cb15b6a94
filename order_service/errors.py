"""
Order Service - エラー定義

ドメインエラーはすべて OrderServiceError を継承し、
対応する HTTP ステータスを持つ。main.py の例外ハンドラが
{"success": false, "error": ...} 形式に変換する。
"""


class OrderServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OrderServiceError):
    """入力が不正（空の明細、数量 0 以下、未知のステータスなど）"""
    status_code = 400


class InsufficientStock(OrderServiceError):
    """在庫不足"""
    status_code = 400


class InvalidTransition(OrderServiceError):
    """許可されない状態遷移（pending 以外のキャンセル）"""
    status_code = 400


class Unauthenticated(OrderServiceError):
    status_code = 401


class Forbidden(OrderServiceError):
    """所有者でも管理者でもない"""
    status_code = 403


class NotFound(OrderServiceError):
    status_code = 404


class Conflict(OrderServiceError):
    """同じ注文への同時更新（イベントのバージョン競合）"""
    status_code = 409
