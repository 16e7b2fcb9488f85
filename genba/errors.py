"""Error taxonomy shared by handlers, dispatcher and API layer."""

from __future__ import annotations


class GenbaError(RuntimeError):
    """Base class for all errors raised by genba.

    ``user_message`` is the single human-readable line shown to the end user;
    the exception text itself is only ever logged.
    """

    user_message = "処理できませんでした。"
    failure_reason = "UNKNOWN"


class DraftValidationError(GenbaError):
    """Malformed or missing input, rejected before any side effect."""

    user_message = "入力内容を確認してください。"
    failure_reason = "VALIDATION"


class NotFoundError(GenbaError):
    """Referenced entity or action does not exist."""

    user_message = "未対応の操作です。"
    failure_reason = "VALIDATION"


class PersistenceError(GenbaError):
    """A backing-store call failed."""

    user_message = "保存できませんでした。会社/権限の設定を確認してください。"
    failure_reason = "UNKNOWN"


class ExternalServiceError(GenbaError):
    """A remote function (AI, OCR, tools) failed or answered garbage."""

    user_message = "外部サービスに接続できませんでした。接続設定を確認してください。"
    failure_reason = "NETWORK"
