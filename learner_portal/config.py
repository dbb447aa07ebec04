"""Learner Portal configuration: loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(REPO_ROOT / ".env")

# Supabase (records + auth)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.environ.get("SUPABASE_SERVICE_KEY", "")

# Paystack (checkout + webhooks)
PAYMENT_PROVIDER = os.environ.get("PAYMENT_PROVIDER", "paystack")
PAYSTACK_SECRET_KEY = os.environ.get("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.environ.get("PAYSTACK_BASE_URL", "https://api.paystack.co")
PAYSTACK_TIMEOUT = float(os.environ.get("PAYSTACK_TIMEOUT", "15"))
# Open checkouts older than this are forgotten
CHECKOUT_TTL_SECONDS = int(os.environ.get("CHECKOUT_TTL_SECONDS", "3600"))

# Public base URL used to build the payment callback
PUBLIC_URL = os.environ.get("PUBLIC_URL", "http://localhost:8000").rstrip("/")

# Server
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "info")

# Listing cache (courses / lessons)
CACHE_STALE_SECONDS = float(os.environ.get("CACHE_STALE_SECONDS", "300"))
CACHE_RETRIES = int(os.environ.get("CACHE_RETRIES", "3"))
CACHE_BACKOFF_BASE = float(os.environ.get("CACHE_BACKOFF_BASE", "0.5"))
CACHE_REFRESH_MINUTES = int(os.environ.get("CACHE_REFRESH_MINUTES", "5"))
# After a failed reload, serve the fallback without retrying for this long
CACHE_FAILURE_COOLDOWN = float(os.environ.get("CACHE_FAILURE_COOLDOWN", "30"))

# Quiz
QUIZ_PASS_THRESHOLD = float(os.environ.get("QUIZ_PASS_THRESHOLD", "70"))

# Webhook rate limiting
WEBHOOK_RATE_LIMIT = int(os.environ.get("WEBHOOK_RATE_LIMIT", "30"))
WEBHOOK_RATE_WINDOW = int(os.environ.get("WEBHOOK_RATE_WINDOW", "60"))
