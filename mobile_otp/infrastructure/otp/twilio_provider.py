import asyncio
import logging
from typing import Optional

from twilio.rest import Client
from twilio.base.exceptions import TwilioException

from ...application.ports.otp_provider import OTPProvider, DeliveryResult
from ...application.otp.phone import mask_mobile

logger = logging.getLogger(__name__)


class TwilioOTPProvider(OTPProvider):
    """Sends the code as a plain SMS through Twilio Programmable Messaging."""

    name = "twilio"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, client: Optional[Client] = None):
        self.client = client or Client(account_sid, auth_token)
        self.from_number = from_number

    def _create_message(self, mobile: str, code: str):
        return self.client.messages.create(
            to=mobile,
            from_=self.from_number,
            body=f"Your verification code is: {code}",
        )

    async def send(self, mobile: str, code: str, purpose: str) -> DeliveryResult:
        if not self.from_number:
            return DeliveryResult(success=False, error="Twilio sender number not configured")
        try:
            # The Twilio client is blocking; keep it off the event loop
            message = await asyncio.to_thread(self._create_message, mobile, code)
        except TwilioException as e:
            logger.error(f"Twilio send failed for {mask_mobile(mobile)} (purpose: {purpose}): {e}")
            return DeliveryResult(success=False, error=str(e))

        if getattr(message, "error_code", None):
            return DeliveryResult(success=False, message_id=message.sid, error=message.error_message or str(message.error_code))
        price = getattr(message, "price", None)
        return DeliveryResult(
            success=True,
            message_id=message.sid,
            cost=abs(float(price)) if price else None,
        )
