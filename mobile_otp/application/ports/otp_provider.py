from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    cost: Optional[float] = None
    error: Optional[str] = None


class OTPProvider(Protocol):
    name: str

    async def send(self, mobile: str, code: str, purpose: str) -> DeliveryResult:
        ...
