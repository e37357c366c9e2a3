"""
Push notifications for call events via Firebase Cloud Messaging (Admin SDK).
"""
import logging
from dataclasses import dataclass
from typing import Optional, Dict

from .firebase_service import get_firebase_app

logger = logging.getLogger("api")


@dataclass
class PushResult:
    """Result of a push notification attempt"""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class FCMService:
    """
    Firebase Cloud Messaging service.
    Uses Firebase Admin SDK for sending messages.
    """

    def __init__(self):
        self._messaging = None

    def _get_messaging(self):
        """Get Firebase messaging module (lazy initialization)"""
        if self._messaging is not None:
            return self._messaging

        try:
            from firebase_admin import messaging

            if get_firebase_app() is not None:
                self._messaging = messaging
                logger.info("[FCM] Firebase messaging initialized")
            else:
                logger.warning("[FCM] Firebase app not initialized")
        except ImportError as e:
            logger.error(f"[FCM] Firebase Admin SDK not installed: {e}")

        return self._messaging

    def send_data_message(self, device_token: str, data: Dict[str, str], ttl: int = 60) -> PushResult:
        """
        Send high-priority data message.

        Args:
            device_token: The FCM device token
            data: Data payload (values are converted to strings)
            ttl: Time to live in seconds
        """
        messaging = self._get_messaging()
        if messaging is None:
            return PushResult(success=False, error="FCM not configured", error_code="not_configured")

        string_data = {k: str(v) for k, v in data.items() if v is not None}

        try:
            message = messaging.Message(
                token=device_token,
                data=string_data,
                android=messaging.AndroidConfig(priority="high", ttl=ttl),
                apns=messaging.APNSConfig(
                    headers={"apns-priority": "10"},
                    payload=messaging.APNSPayload(aps=messaging.Aps(content_available=True)),
                ),
            )
            response = messaging.send(message)
            logger.info(f"[FCM] Message sent successfully: {response}")
            return PushResult(success=True, message_id=response)
        except messaging.UnregisteredError:
            logger.warning(f"[FCM] Token unregistered: {device_token[:20]}...")
            return PushResult(success=False, error="Token unregistered", error_code="UNREGISTERED")
        except Exception as e:
            logger.error(f"[FCM] Send error: {e}")
            return PushResult(success=False, error=str(e), error_code="exception")


class PushNotificationService:
    def __init__(self):
        self.fcm = FCMService()

    def send_incoming_call_push(self, fcm_token: Optional[str], call: dict, caller_name: str) -> PushResult:
        if not fcm_token:
            return PushResult(success=False, error="Missing fcm_token", error_code="missing_token")

        return self.fcm.send_data_message(fcm_token, {
            "type": "incoming_call",
            "callId": call["id"],
            "roomId": call["room_id"],
            "callType": call["call_type"],
            "callerId": call["caller_id"],
            "callerName": caller_name,
        })

    def send_call_cancelled_push(self, fcm_token: Optional[str], call: dict) -> PushResult:
        """Caller hung up before the receiver answered."""
        if not fcm_token:
            return PushResult(success=False, error="No valid token", error_code="missing_token")

        return self.fcm.send_data_message(fcm_token, {
            "type": "call_cancelled",
            "callId": call["id"],
            "roomId": call.get("room_id"),
        })


# Singleton instance
push_service = PushNotificationService()
