import os
from pathlib import Path
from dotenv import load_dotenv

# Force-load .env (Windows-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Caller authentication
JWT_SECRET = os.getenv("JWT_SECRET")
OAUTH_STATE_SECRET = os.getenv("OAUTH_STATE_SECRET") or JWT_SECRET
OAUTH_STATE_MAX_AGE_SECONDS = int(os.getenv("OAUTH_STATE_MAX_AGE_SECONDS", "1800"))

# Public base URL of this application, used for OAuth redirects
APP_URL = os.getenv("APP_URL")

# Mercado Pago Point
MERCADOPAGO_CLIENT_ID = os.getenv("MERCADOPAGO_CLIENT_ID")
MERCADOPAGO_CLIENT_SECRET = os.getenv("MERCADOPAGO_CLIENT_SECRET")
MERCADOPAGO_REDIRECT_URI = os.getenv("MERCADOPAGO_REDIRECT_URI")
MERCADOPAGO_API_URL = os.getenv("MERCADOPAGO_API_URL", "https://api.mercadopago.com")
MERCADOPAGO_AUTH_URL = os.getenv(
    "MERCADOPAGO_AUTH_URL", "https://auth.mercadopago.com/authorization"
)
