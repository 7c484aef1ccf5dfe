"""
Setu - Configuration & Constants
All environment variables, role matrix, and ledger constants.
"""
import os
import string
from pathlib import Path

# ============================================================
# PATHS
# ============================================================
BASE_DIR = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.environ.get("DATA_DIR", BASE_DIR / "data"))
UPLOAD_DIR = Path(os.environ.get("UPLOAD_DIR", DATA_DIR / "uploads"))
DB_PATH = Path(os.environ.get("DB_PATH", DATA_DIR / "setu.db"))

# ============================================================
# DATABASE
# ============================================================
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_POOL_MIN = int(os.environ.get("DB_POOL_MIN", "1"))
DB_POOL_MAX = int(os.environ.get("DB_POOL_MAX", "5"))
AUTO_MIGRATE = os.environ.get("AUTO_MIGRATE", "true").lower() == "true"

# ============================================================
# AUTH
# ============================================================
JWT_SECRET = os.environ.get("JWT_SECRET", os.urandom(32).hex())
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.environ.get("JWT_EXPIRY_HOURS", "8"))

INIT_ADMIN_USERNAME = os.environ.get("INIT_ADMIN_USERNAME", "admin")
INIT_ADMIN_PASSWORD = os.environ.get("INIT_ADMIN_PASSWORD", "Admin@123")
INIT_ADMIN_RESET = os.environ.get("INIT_ADMIN_RESET", "").lower() in ("1", "true")

# ============================================================
# ROLES
# ============================================================
ROLES = {
    "user":      {"title": "Member",     "level": 1},
    "admin":     {"title": "Admin",      "level": 2},
    "mainadmin": {"title": "Main Admin", "level": 3},
}
DEFAULT_ROLE = "user"
PRIVILEGED_ROLES = ("admin", "mainadmin")
TOP_ROLE = "mainadmin"
ANY_ROLE = "any"
MEMBER_ROLES = ("user", "admin", "mainadmin")

# ============================================================
# RECEIPT CODES
# ============================================================
RECEIPT_LETTERS = string.ascii_uppercase
RECEIPT_DIGITS = string.digits
RECEIPT_ALPHABET = RECEIPT_LETTERS + RECEIPT_DIGITS
RECEIPT_CODE_LENGTH = 6
RECEIPT_CODE_MAX_TRIES = 1000

# Stripped from approved donations unless the caller holds TOP_ROLE
SENSITIVE_DONATION_KEYS = (
    "screenshotUrl", "screenshotPath", "paymentScreenshot", "screenshot",
    "cashReceiverName", "receiverName", "receivedBy",
)

# ============================================================
# CATALOG
# ============================================================
SLUG_MAX_ATTEMPTS = 100
EVENT_PAGE_DEFAULT = 500
EVENT_PAGE_MAX = 1000
GIFT_PAYMENT_METHOD = "gift"

# ============================================================
# UPLOADS
# ============================================================
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "").rstrip("/")
CLOUDINARY_URL = os.environ.get("CLOUDINARY_URL")
CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.environ.get("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.environ.get("CLOUDINARY_API_SECRET")
USE_CLOUDINARY = bool(CLOUDINARY_URL or (CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET))

UPLOAD_FOLDER_PREFIX = os.environ.get("UPLOAD_FOLDER_PREFIX", "setu")
SCREENSHOT_FOLDER = "screenshots"
GALLERY_FOLDER = "gallery"
EBOOK_FOLDER = "ebooks"
MAX_UPLOAD_BYTES = 20 * 1024 * 1024
MAX_FILES_PER_UPLOAD = 25
ALLOWED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp"}
MAX_EBOOK_BYTES = 100 * 1024 * 1024
ALLOWED_EBOOK_EXTS = {".pdf"}
UPLOAD_MEDIA_TYPES = {
    ".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png",
    ".webp": "image/webp", ".gif": "image/gif", ".bmp": "image/bmp", ".pdf": "application/pdf",
}

# ============================================================
# SERVER
# ============================================================
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.environ.get("PORT", "8000"))

# ============================================================
# VERSION
# ============================================================
VERSION = "1.4.0"
