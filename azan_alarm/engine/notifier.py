"""
System notifications for triggers, delivered through plyer.
"""
import asyncio
import importlib.util
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from plyer import notification
from plyer.utils import platform

from azan_alarm.core.task_manager import spawn


class NotificationPermission:
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class NotificationCapability(ABC):
    """Permission state plus the ability to show one notification."""

    @property
    @abstractmethod
    def permission(self) -> str:
        pass

    @abstractmethod
    async def request_permission(self) -> str:
        """Resolve an unknown permission; returns the new state."""

    @abstractmethod
    def notify(self, payload: Dict[str, Any]) -> None:
        pass


class PlyerNotificationCapability(NotificationCapability):
    """
    Uses plyer's notification facade. Support is probed the first time permission is
    requested; config may pin the permission to "granted" or "denied".
    """

    def __init__(self, app_name: str = "Azan Alarm", icon: str = "", permission: Optional[str] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.app_name = app_name
        self.icon = icon or ""
        if permission in (NotificationPermission.GRANTED, NotificationPermission.DENIED):
            self._permission = permission
        else:
            self._permission = NotificationPermission.UNKNOWN

    @classmethod
    def from_config(cls, config_data: Dict[str, Any]) -> "PlyerNotificationCapability":
        notifications_config = config_data.get("notifications", {}) or {}
        return cls(
            app_name=notifications_config.get("app_name", "Azan Alarm"),
            icon=notifications_config.get("icon", ""),
            permission=notifications_config.get("permission"),
        )

    @property
    def permission(self) -> str:
        return self._permission

    async def request_permission(self) -> str:
        supported = await asyncio.to_thread(self._platform_supported)
        self._permission = NotificationPermission.GRANTED if supported else NotificationPermission.UNSUPPORTED
        self.logger.info(f"Notification permission on {platform}: {self._permission}")
        return self._permission

    @staticmethod
    def _platform_supported() -> bool:
        try:
            return importlib.util.find_spec(f"plyer.platforms.{platform}.notification") is not None
        except ImportError:
            return False

    def notify(self, payload: Dict[str, Any]) -> None:
        # timeout=0 keeps the notification until the user dismisses it
        timeout = 0 if payload.get("require_interaction") else 10
        notification.notify(
            title=payload["title"],
            message=payload["body"],
            app_name=self.app_name,
            app_icon=payload.get("icon") or "",
            timeout=timeout,
        )


class NotificationDispatcher:
    """Fire-and-forget notification delivery. Never raises to the caller."""

    def __init__(self, capability: NotificationCapability, icon: str = ""):
        self.capability = capability
        self.icon = icon
        self.logger = logging.getLogger(self.__class__.__name__)

    def dispatch(self, title: str, body: str, vibrate: bool = False) -> None:
        """Must be called on the loop thread."""
        spawn(self._dispatch(title, body, vibrate), name="notification")

    async def _dispatch(self, title: str, body: str, vibrate: bool) -> None:
        permission = self.capability.permission
        if permission == NotificationPermission.UNKNOWN:
            try:
                permission = await self.capability.request_permission()
            except Exception as e:
                self.logger.error(f"Notification permission request failed: {e}")
                return

        if permission == NotificationPermission.UNSUPPORTED:
            self.logger.warning(f"Notifications not supported, skipped: {title}")
            return
        if permission != NotificationPermission.GRANTED:
            self.logger.warning(f"Notification permission {permission}, skipped: {title}")
            return

        payload = {"title": title, "body": body, "icon": self.icon, "require_interaction": True,
                   "vibrate": vibrate}
        try:
            await asyncio.to_thread(self.capability.notify, payload)
            self.logger.info(f"Notification sent: {title} - {body}")
        except Exception as e:
            self.logger.error(f"Error showing notification: {e}")
