import logging

from ...config import Settings
from ...application.ports.otp_provider import OTPProvider
from .mock_provider import MockOTPProvider
from .brand_custom_provider import BrandCustomOTPProvider

logger = logging.getLogger(__name__)


def build_otp_provider(settings: Settings) -> OTPProvider:
    """Pick the delivery provider named by ``OTP_PROVIDER``."""
    provider = (settings.OTP_PROVIDER or "mock").strip().lower()

    if provider == "brand-custom":
        logger.info("Using brand-custom OTP provider")
        return BrandCustomOTPProvider(
            endpoint=settings.BRAND_OTP_ENDPOINT,
            api_key=settings.OTP_API_KEY,
            sender_id=settings.OTP_SENDER_ID,
            template_id=settings.OTP_TEMPLATE_ID,
            timeout_seconds=settings.OTP_PROVIDER_TIMEOUT_SECONDS,
        )
    if provider == "twilio":
        from .twilio_provider import TwilioOTPProvider

        logger.info("Using Twilio OTP provider")
        return TwilioOTPProvider(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
        )
    if provider != "mock":
        logger.warning(f"Unknown OTP_PROVIDER '{settings.OTP_PROVIDER}', falling back to mock")
    if settings.is_production:
        logger.warning("Mock OTP provider active in production; codes are not delivered")
    return MockOTPProvider(delay_seconds=settings.OTP_MOCK_DELAY_SECONDS)
