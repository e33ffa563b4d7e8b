# crowdsolve/config.py
import os

from dotenv import load_dotenv

# cargar .env antes de leer cualquier variable
load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# ====== storage ======
AZURE_STORAGE_CONNECTION_STRING = os.getenv("AZURE_STORAGE_CONNECTION_STRING")
TABLE_NAME = os.getenv("TABLE_NAME", "notifications")

# ====== service bus ======
SB_CONN_STR = os.getenv("AZURE_SERVICE_BUS_CONNECTION_STRING")
SB_QUEUE = os.getenv("AZURE_SERVICE_BUS_QUEUE_NAME", "notifications-queue")

# ====== auth ======
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALG = os.getenv("JWT_ALG", "HS256")

# ====== http ======
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
DEV_ENDPOINTS = _flag("DEV_ENDPOINTS")
NOTIFICATIONS_PAGE_LIMIT = int(os.getenv("NOTIFICATIONS_PAGE_LIMIT", "20"))

# ping/pong del servidor ASGI: una sesión sin respuesta se trata como disconnect
WS_PING_INTERVAL = float(os.getenv("WS_PING_INTERVAL", "25"))
WS_PING_TIMEOUT = float(os.getenv("WS_PING_TIMEOUT", "20"))

# ====== logging ======
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
