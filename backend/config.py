# Product catalog vocabulary
CATEGORIES = [
    "apparel",
    "bags",
    "drinkware",
    "electronics",
    "office",
    "outdoor",
    "wellness",
    "other",
]

# Statuses accepted from the admin UI and CSV import. "deleted" and "archived"
# are only ever set by the server.
PRODUCT_STATUSES = ["active", "inactive", "draft"]

PLACEMENT_TYPES = ["horizontal", "vertical", "all_over"]
PLACEMENT_SIDES = ["front", "back"]

# Mockup generation accepts two extra placements that have no stored constraint
MOCKUP_PLACEMENT_TYPES = PLACEMENT_TYPES + ["corner", "center"]

PLACEHOLDER_IMAGE_URL = "/placeholder-product-image.jpg"

# SKU prefixes by category
SKU_PREFIXES = {
    "apparel": "APP",
    "bags": "BAG",
    "drinkware": "DRK",
    "electronics": "ELE",
    "office": "OFF",
    "outdoor": "OUT",
    "wellness": "WEL",
    "other": "OTH",
}
SKU_DEFAULT_PREFIX = "PRD"
SKU_MIN_LENGTH = 3
SKU_MAX_LENGTH = 50

# Tokens (seconds)
ACCESS_TOKEN_TTL = 15 * 60
REFRESH_TOKEN_TTL = 7 * 24 * 3600
REFRESH_TOKEN_TTL_REMEMBER = 30 * 24 * 3600
RESET_TOKEN_TTL = 3600
BCRYPT_ROUNDS = 12

# Cookie names
AUTH_COOKIE = "auth-token"
REFRESH_COOKIE = "refresh-token"
SESSION_COOKIE = "session-id"

# Session management (seconds)
SESSION_IDLE_TIMEOUT = 30 * 60
SESSION_ABSOLUTE_TIMEOUT = 12 * 3600
SESSION_REMEMBER_ME_TIMEOUT = 30 * 24 * 3600
SESSION_WARNING_BEFORE_TIMEOUT = 5 * 60
SESSION_ACTIVITY_UPDATE_INTERVAL = 60
MAX_CONCURRENT_SESSIONS = 5
ENFORCE_SINGLE_SESSION = False
SESSION_PURGE_AFTER_DAYS = 30

AUDIT_RETENTION_DAYS = 90

# Uploads
UPLOAD_MAX_BYTES = 10 * 1024 * 1024
UPLOAD_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
UPLOAD_MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}
UPLOAD_BUCKETS = ["gift-items", "constraint-images", "user-logos", "generated-mockups"]
DEFAULT_UPLOAD_BUCKET = "gift-items"

# Image proxy
IMAGE_PROXY_DOMAINS = ["images.unsplash.com", "supabase.co", "easyprintsg.com"]
IMAGE_PROXY_USER_AGENT = "MockupGen-ImageProxy/1.0"
IMAGE_PROXY_DEFAULT_QUALITY = 85
IMAGE_PROXY_DEFAULT_FORMAT = "webp"
IMAGE_PROXY_FORMATS = {"webp": "image/webp", "png": "image/png", "jpeg": "image/jpeg", "jpg": "image/jpeg"}

# remove.bg
REMOVE_BG_BASE_URL = "https://api.remove.bg/v1.0"
REMOVE_BG_RATE_LIMIT = 50  # requests per minute per key
REMOVE_BG_SIZES = ["auto", "preview", "full", "50MP"]
REMOVE_BG_FORMATS = ["auto", "png", "jpg", "zip"]

# Gemini
GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image-preview"
GEMINI_TEXT_MODEL = "gemini-1.5-flash"
GEMINI_TIMEOUT = 60.0

# Mockup generation
MOCKUP_RATE_LIMIT = 10  # requests per minute per client IP
MOCKUP_SESSION_TTL_HOURS = 24
DEFAULT_ADJUSTMENTS = {
    "scale": 1.0,
    "rotation": 0.0,
    "x": 0.5,
    "y": 0.5,
    "flipH": False,
    "flipV": False,
    "opacity": 1.0,
}

# Fallback placement areas when a product has no stored constraint,
# as fractions of the product image: (x, y, width, height)
FALLBACK_PLACEMENT_AREAS = {
    "horizontal": (0.30, 0.35, 0.40, 0.30),
    "vertical": (0.375, 0.275, 0.25, 0.45),
    "all_over": (0.10, 0.10, 0.80, 0.80),
    "corner": (0.75, 0.75, 0.20, 0.20),
    "center": (0.35, 0.35, 0.30, 0.30),
}

# Composited logos never exceed this share of the canvas
MAX_LOGO_CANVAS_RATIO = 0.4
MIN_LOGO_SCALE = 0.1
MAX_LOGO_SCALE = 2.0

# Response cache TTLs (seconds)
CATALOG_CACHE_TTL = 300
STATISTICS_CACHE_TTL = 60
IMAGE_PROXY_CACHE_TTL = 3600

CATALOG_CACHE_CONTROL = "public, max-age=300, s-maxage=600"
IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable"

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "img-src 'self' data: blob: https:; "
    "script-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "connect-src 'self' https://api.remove.bg https://generativelanguage.googleapis.com; "
    "frame-ancestors 'none'"
)
