from .dispatcher import NotificationDispatcher
from .models import Channel, DispatchResult, Notification, NotificationStatus, RouteTarget
from .router import NotificationRouter
from .transports import (
    EmailTransport,
    HttpSmsGateway,
    SmsTransport,
    SmtpEmailTransport,
    TransportError,
    build_transports,
)

__all__ = [
    "Channel",
    "DispatchResult",
    "EmailTransport",
    "HttpSmsGateway",
    "Notification",
    "NotificationDispatcher",
    "NotificationRouter",
    "NotificationStatus",
    "RouteTarget",
    "SmsTransport",
    "SmtpEmailTransport",
    "TransportError",
    "build_transports",
]
