import logging
from dataclasses import dataclass, field
from typing import Optional, List, Literal
from mealcam.orchestrator.contracts import AnalysisResult

logger = logging.getLogger("mealcam")

LOG_LIMIT = 200
NOTIFICATION_LIMIT = 50

NotificationLevel = Literal["success", "error", "info"]


@dataclass
class Notification:
    level: NotificationLevel
    message: str


@dataclass
class StatusStore:
    last_error: Optional[str] = None
    last_error_code: Optional[str] = None
    last_result: Optional[AnalysisResult] = None
    notifications: List[Notification] = field(default_factory=list)  # transient toasts, read-and-clear
    logs: List[str] = field(default_factory=list)

    def log(self, msg: str):
        logger.info(msg)
        self.logs.append(msg)
        if len(self.logs) > LOG_LIMIT:
            self.logs = self.logs[-LOG_LIMIT:]

    def notify(self, level: NotificationLevel, message: str, code: Optional[str] = None):
        if level == "error":
            self.last_error = message
            self.last_error_code = code
        self.notifications.append(Notification(level=level, message=message))
        if len(self.notifications) > NOTIFICATION_LIMIT:
            self.notifications = self.notifications[-NOTIFICATION_LIMIT:]

    def error(self, message: str, code: Optional[str] = None):
        self.notify("error", message, code=code)

    def success(self, message: str):
        self.notify("success", message)

    def clear_error(self):
        self.last_error = None
        self.last_error_code = None

    def drain_notifications(self) -> List[Notification]:
        pending, self.notifications = self.notifications, []
        return pending
