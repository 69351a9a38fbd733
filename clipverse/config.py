import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///clipverse.db")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")

    CORS_ORIGINS = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173"
    )

    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    OTP_RATELIMIT = os.getenv("OTP_RATELIMIT", "5 per minute")

    ACCESS_EXPIRES = int(os.getenv("ACCESS_EXPIRES", 30 * 86400))
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=ACCESS_EXPIRES)

    OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", 10))
    OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", 5))
    OTP_RESEND_COOLDOWN = int(os.getenv("OTP_RESEND_COOLDOWN", 30))

    basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    PROFILES_FOLDER = os.path.join(basedir, "uploads/profiles")
    COMMUNITIES_FOLDER = os.path.join(basedir, "uploads/communities")
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024
    ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png"}

    PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET", "")

    DEFAULT_PAGE_SIZE = 20
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

class ProductionConfig(Config):
    DEBUG = False

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"
    RATELIMIT_ENABLED = False
    OTP_RESEND_COOLDOWN = 0
    PAYMENT_WEBHOOK_SECRET = "whsec_test"
    LOG_LEVEL = "WARNING"
