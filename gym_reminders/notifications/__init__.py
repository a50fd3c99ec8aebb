"""
SMS notifications: message templates, the Twilio gateway adapter and the
one-off messages (welcome, broadcast) sent outside the reminder sweep.
"""

from .broadcast import BROADCAST_TARGETS, BroadcastReport, send_broadcast
from .sms import SmsGateway, SmsSendResult
from .templates import DEFAULT_TEMPLATES, get_sms_template, render_template
from .welcome import send_welcome_sms

__all__ = [
    "BROADCAST_TARGETS",
    "BroadcastReport",
    "DEFAULT_TEMPLATES",
    "SmsGateway",
    "SmsSendResult",
    "get_sms_template",
    "render_template",
    "send_broadcast",
    "send_welcome_sms",
]
