"""
Application settings for the RentEase billing backend.

Values come from the environment (a local .env file is loaded first).
Modules import the constants they need directly:

     from config import CURRENCY, DEPOSIT_COVERS_LAST_MONTH_RATIO
"""
import os
from decimal import Decimal
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()


def _build_database_url() -> str:
     """Prefer an explicit DATABASE_URL, else build the MS SQL Server URL."""
     explicit = os.getenv("DATABASE_URL")
     if explicit:
          return explicit

     server = os.getenv("DB_SERVER")
     port = os.getenv("DB_PORT", "1433")
     user = quote_plus(os.getenv("DB_USER") or "")
     password = quote_plus(os.getenv("DB_PASS") or "")
     name = os.getenv("DB_NAME")
     return f"mssql+pymssql://{user}:{password}@{server}:{port}/{name}"


# Database
DATABASE_URL = _build_database_url()
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# HTTP / auth
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = "HS256"
CORS_ORIGINS = [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Billing rules
CURRENCY = os.getenv("CURRENCY", "PHP")
# Deposit at or above this share of one month's rent covers the final contract month.
DEPOSIT_COVERS_LAST_MONTH_RATIO = Decimal(os.getenv("DEPOSIT_COVERS_LAST_MONTH_RATIO", "0.90"))

# PayMaya checkout gateway
PAYMAYA_PUBLIC_KEY = os.getenv("PAYMAYA_PUBLIC_KEY")
PAYMAYA_SECRET_KEY = os.getenv("PAYMAYA_SECRET_KEY")
PAYMAYA_BASE_URL = os.getenv("PAYMAYA_BASE_URL_SANDBOX", "https://pg-sandbox.paymaya.com")
PAYMENT_REDIRECT_BASE = os.getenv("PAYMENT_REDIRECT_BASE", "https://rentease.app")
GATEWAY_MAX_RETRIES = int(os.getenv("GATEWAY_MAX_RETRIES", "3"))
GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))

# Proof artifact storage (Azure Blob)
AZURE_STORAGE_ACCOUNT = os.getenv("AZURE_STORAGE_ACCOUNT")
AZURE_STORAGE_KEY = os.getenv("AZURE_STORAGE_KEY")
PROOF_CONTAINER = os.getenv("PROOF_CONTAINER", "payment-proofs")
BLOB_MAX_RETRIES = int(os.getenv("BLOB_MAX_RETRIES", "3"))

# Notification dispatcher
NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "5"))
