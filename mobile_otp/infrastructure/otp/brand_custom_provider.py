import asyncio
import logging
from typing import Optional

import aiohttp

from ...application.ports.otp_provider import OTPProvider, DeliveryResult
from ...application.otp.phone import mask_mobile

logger = logging.getLogger(__name__)

DEFAULT_COST = 0.05


class BrandCustomOTPProvider(OTPProvider):
    """Brand-operated SMS gateway reached over a JSON HTTP endpoint."""

    name = "brand-custom"

    def __init__(self, endpoint: str, api_key: Optional[str] = None, sender_id: Optional[str] = None,
                 template_id: Optional[str] = None, timeout_seconds: float = 5.0) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.sender_id = sender_id
        self.template_id = template_id
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _message(self, code: str) -> str:
        return f"Your verification code is: {code}"

    async def send(self, mobile: str, code: str, purpose: str) -> DeliveryResult:
        if not self.endpoint:
            return DeliveryResult(success=False, error="Brand OTP endpoint not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "mobile": mobile,
            "message": self._message(code),
            "senderId": self.sender_id,
            "templateId": self.template_id,
        }

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.endpoint, json=payload, headers=headers) as response:
                    if response.status >= 400:
                        reason = response.reason or str(response.status)
                        logger.error(f"Brand OTP API error for {mask_mobile(mobile)} (purpose: {purpose}): {response.status} {reason}")
                        return DeliveryResult(success=False, error=f"Brand OTP API error: {reason}")
                    body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Brand OTP service error for {mask_mobile(mobile)} (purpose: {purpose}): {e!r}")
            return DeliveryResult(success=False, error=str(e) or e.__class__.__name__)

        body = body if isinstance(body, dict) else {}
        return DeliveryResult(
            success=True,
            message_id=body.get("messageId"),
            cost=body.get("cost") or DEFAULT_COST,
        )
