"""
Saakie - Centralized Configuration
===================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    if not all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        print("[ERROR] Critical: Database config missing in .env (DATABASE_URL or DB_USER, DB_PASSWORD, DB_HOST, DB_NAME)")
        sys.exit(1)
    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ==========================================
# 🔐 Auth (hosted identity provider)
# ==========================================
# PEM public key (RS256) or shared secret (HS256) used to verify session tokens
AUTH_JWT_KEY = os.getenv("AUTH_JWT_KEY", "").replace("\\n", "\n")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "RS256")
AUTH_JWT_ISSUER = os.getenv("AUTH_JWT_ISSUER", "")
SESSION_COOKIE = "__session"

CLERK_WEBHOOK_SECRET = os.getenv("CLERK_WEBHOOK_SECRET", "")


# ==========================================
# 💳 Payment Gateways
# ==========================================
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com")
STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
RAZORPAY_API_BASE = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com")

PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
GATEWAY_TIMEOUT_SECONDS = int(os.getenv("GATEWAY_TIMEOUT_SECONDS") or "15")


# ==========================================
# 🧾 Pricing
# ==========================================
FREE_SHIPPING_THRESHOLD = 2999   # strictly above this → free shipping
FLAT_SHIPPING_FEE = 99
TAX_RATE = 0.18                  # GST


# ==========================================
# 🤖 Chat Assistant
# ==========================================
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
CHAT_TIMEOUT_SECONDS = 30


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"

# Awaiting-payment orders older than this are cancelled by the scheduler
ORDER_PAYMENT_TIMEOUT_MINUTES = int(os.getenv("ORDER_PAYMENT_TIMEOUT_MINUTES") or "60")

WEBHOOK_LOG_RETENTION_DAYS = 30
