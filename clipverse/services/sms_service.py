import logging

from flask import current_app

from clipverse.utils.otp import mask_phone

logger = logging.getLogger(__name__)


def send_otp_sms(phone, otp):
    """Hand the code to the SMS gateway.

    No gateway is wired in yet; outside production the code is logged so
    it can be read from the console during development.
    """
    expires_in = current_app.config.get("OTP_EXPIRY_MINUTES", 10)

    if current_app.debug:
        logger.info("OTP for %s: %s (valid %s min)", phone, otp, expires_in)
    else:
        logger.info("OTP issued to %s (valid %s min)", mask_phone(phone), expires_in)
