import asyncio
import logging
import uuid
from collections import deque
from typing import Deque, Dict

from ...application.ports.otp_provider import OTPProvider, DeliveryResult
from ...application.otp.phone import mask_mobile

logger = logging.getLogger(__name__)


class MockOTPProvider(OTPProvider):
    """Development provider: nothing leaves the process.

    Dispatched messages are kept in a bounded ``outbox`` so local tooling and
    tests can read the code back; the code itself is never logged.
    """

    name = "mock"
    cost_per_message = 0.01

    def __init__(self, delay_seconds: float = 0.0, outbox_size: int = 100) -> None:
        self.delay_seconds = delay_seconds
        self.outbox: Deque[Dict[str, str]] = deque(maxlen=outbox_size)

    async def send(self, mobile: str, code: str, purpose: str) -> DeliveryResult:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        message_id = f"mock_{uuid.uuid4().hex}"
        self.outbox.append({"mobile": mobile, "code": code, "purpose": purpose, "message_id": message_id})
        logger.info(f"Mock OTP dispatched to {mask_mobile(mobile)} (purpose: {purpose}, message_id: {message_id})")
        return DeliveryResult(success=True, message_id=message_id, cost=self.cost_per_message)

    def last_code_for(self, mobile: str):
        for entry in reversed(self.outbox):
            if entry["mobile"] == mobile:
                return entry["code"]
        return None
