"""Environment-aware configuration for the Flask application."""
import os
import tempfile
from datetime import timedelta


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: a non-empty secret and the backend on localhost. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        self.API_BASE_URL = os.getenv("CIVIC_API_URL", "http://localhost:8000/api").rstrip("/")
        self.API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", 15))
        self.ADMIN_CREDENTIALS_PATH = os.getenv(
            "ADMIN_CREDENTIALS_PATH",
            os.path.join(os.getcwd(), "admin_credentials.json"),
        )
        self.NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
        self.NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "civic-saathi-web/1.0")
        self.GEOCODE_TIMEOUT_SECONDS = float(os.getenv("GEOCODE_TIMEOUT_SECONDS", 10))
        self.SESSION_COOKIE_HTTPONLY = True
        self.REMEMBER_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.PERMANENT_SESSION_LIFETIME = timedelta(days=30)
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.WTF_CSRF_TIME_LIMIT = 3600
        self.WTF_CSRF_ENABLED = True
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.COMPLAINT_UPLOAD_FOLDER = os.getenv(
            "COMPLAINT_UPLOAD_FOLDER",
            os.path.join(os.getcwd(), "instance", "complaint_uploads"),
        )
        self.MAX_IMAGE_UPLOAD_BYTES = int(os.getenv("MAX_IMAGE_UPLOAD_BYTES", 8 * 1024 * 1024))
        self.DRAFT_IMAGE_MAX_AGE_HOURS = int(os.getenv("DRAFT_IMAGE_MAX_AGE_HOURS", 24))
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 16 * 1024 * 1024))
        self.COMPLAINTS_PER_PAGE = int(os.getenv("COMPLAINTS_PER_PAGE", 20))
        self.RECENT_COMPLAINTS_LIMIT = int(os.getenv("RECENT_COMPLAINTS_LIMIT", 4))
        self.DEFAULT_WORKER_STATE = os.getenv("DEFAULT_WORKER_STATE", "Rajasthan")


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.SESSION_COOKIE_SECURE = True
        self.REMEMBER_COOKIE_SECURE = True
        self.SEND_FILE_MAX_AGE_DEFAULT = 31536000


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        scratch = tempfile.mkdtemp(prefix="civic-saathi-")
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        self.WTF_CSRF_ENABLED = False
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False
        self.PREFERRED_URL_SCHEME = "http"
        self.LOG_LEVEL = "WARNING"
        self.LOG_DIR = os.path.join(scratch, "logs")
        self.COMPLAINT_UPLOAD_FOLDER = os.path.join(scratch, "uploads")
        self.ADMIN_CREDENTIALS_PATH = os.path.join(scratch, "admin_credentials.json")
