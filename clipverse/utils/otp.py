import secrets
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import timedelta

from clipverse.utils.clock import utcnow

def generate_otp():
    return f"{secrets.randbelow(1000000):06d}"

def hash_otp(otp: str):
    return generate_password_hash(otp)

def verify_otp(otp: str, otp_hash: str):
    return check_password_hash(otp_hash, otp)

def otp_expiry(minutes=10, now=None):
    return (now or utcnow()) + timedelta(minutes=minutes)

def mask_phone(phone: str):
    if not phone or len(phone) <= 4:
        return "****"
    return f"{'*' * (len(phone) - 4)}{phone[-4:]}"
