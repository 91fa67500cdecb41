import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./repairhub.db")

SECRET_KEY = os.getenv("SECRET_KEY", "dev-key-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "120"))

# remote signature links and display URLs are built on top of this
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8080").rstrip("/")

DISPLAY_COMPLETED_GRACE_SECONDS = float(os.getenv("DISPLAY_COMPLETED_GRACE_SECONDS", "10"))
REMOTE_SIGNATURE_TTL_MINUTES = int(os.getenv("REMOTE_SIGNATURE_TTL_MINUTES", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:8080,http://127.0.0.1:8080").split(",")
    if o.strip()
]

OWNER_EMAIL = os.getenv("OWNER_EMAIL")
OWNER_PASSWORD = os.getenv("OWNER_PASSWORD")
