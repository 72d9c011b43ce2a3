import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./appforge.db")
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql")  # sql | memory

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL")
OPENAI_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

# ✅ Generation output
DOWNLOADS_DIR = os.getenv("DOWNLOADS_DIR", "./downloads")
UPLOADS_DIR = os.getenv("UPLOADS_DIR", "./uploads")
MAX_ICON_UPLOAD_BYTES = 5 * 1024 * 1024
STEP_DELAY_SCALE = float(os.getenv("STEP_DELAY_SCALE", "1.0"))

# ✅ Service
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]
