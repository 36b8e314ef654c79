"""
Localized status and error messages reported to the user.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

__all__ = [
    "Locale",
    "Message",
    "translate",
]

Locale = Literal["en", "ar"]


class Message(Enum):
    """
    Identifies a user-facing message. Some take `detail` or `table`
    placeholders.
    """

    OFFLINE = "offline"
    NOT_AUTHENTICATED = "not_authenticated"
    UNCONFIGURED = "unconfigured"
    CHECKING_SERVER = "checking_server"
    FETCHING = "fetching"
    DELETING_FILES = "deleting_files"
    DELETING = "deleting"
    UPLOADING = "uploading"
    REFRESHING = "refreshing"
    UNEXPECTED = "unexpected"
    NETWORK = "network"
    UNINITIALIZED = "uninitialized"
    CONNECTION_FAILED = "connection_failed"
    SCHEMA_MISMATCH = "schema_mismatch"
    TABLE_PREFIX = "table_prefix"
    SYNC_FAILED = "sync_failed"
    REFRESH_FAILED = "refresh_failed"


_CATALOG: dict[Locale, dict[Message, str]] = {
    "en": {
        Message.OFFLINE: "You must be online to sync.",
        Message.NOT_AUTHENTICATED: "You must be logged in to sync.",
        Message.UNCONFIGURED: "The remote store is not configured.",
        Message.CHECKING_SERVER: "Checking server...",
        Message.FETCHING: "Fetching data from the cloud...",
        Message.DELETING_FILES: "Deleting files from the cloud...",
        Message.DELETING: "Deleting data from the cloud...",
        Message.UPLOADING: "Uploading data to the cloud...",
        Message.REFRESHING: "Refreshing data...",
        Message.UNEXPECTED: "An unexpected error occurred.",
        Message.NETWORK: "Failed to connect to the server.",
        Message.UNINITIALIZED: "The database is not initialized: {detail}",
        Message.CONNECTION_FAILED: "Connection failed: {detail}",
        Message.SCHEMA_MISMATCH: "The database schema does not match: {detail}",
        Message.TABLE_PREFIX: "[table: {table}] {detail}",
        Message.SYNC_FAILED: "Sync failed: {detail}",
        Message.REFRESH_FAILED: "Failed to refresh data: {detail}",
    },
    "ar": {
        Message.OFFLINE: "يجب أن تكون متصلاً بالإنترنت للمزامنة.",
        Message.NOT_AUTHENTICATED: "يجب تسجيل الدخول للمزامنة.",
        Message.UNCONFIGURED: "لم يتم إعداد الخادم.",
        Message.CHECKING_SERVER: "التحقق من الخادم...",
        Message.FETCHING: "جاري جلب البيانات من السحابة...",
        Message.DELETING_FILES: "جاري حذف الملفات من السحابة...",
        Message.DELETING: "جاري حذف البيانات من السحابة...",
        Message.UPLOADING: "جاري رفع البيانات إلى السحابة...",
        Message.REFRESHING: "جاري تحديث البيانات...",
        Message.UNEXPECTED: "حدث خطأ غير متوقع.",
        Message.NETWORK: "فشل الاتصال بالخادم.",
        Message.UNINITIALIZED: "قاعدة البيانات غير مهيأة: {detail}",
        Message.CONNECTION_FAILED: "فشل الاتصال: {detail}",
        Message.SCHEMA_MISMATCH: "هناك عدم تطابق في مخطط قاعدة البيانات: {detail}",
        Message.TABLE_PREFIX: "[جدول: {table}] {detail}",
        Message.SYNC_FAILED: "فشل المزامنة: {detail}",
        Message.REFRESH_FAILED: "فشل تحديث البيانات: {detail}",
    },
}


def translate(message: Message, locale: Locale = "en", **kwargs: str) -> str:
    """
    Get message text in the given locale with placeholders filled in.
    """
    return _CATALOG[locale][message].format(**kwargs)
