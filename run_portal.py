#!/usr/bin/env python3
"""Learner Portal: the course platform API server.

Launch: python3 run_portal.py
Serves at http://0.0.0.0:8000 (or PORT env var)
"""

import logging
import os

import uvicorn

from learner_portal.config import HOST, LOG_LEVEL, PAYSTACK_SECRET_KEY, PORT


def main():
    print("=" * 60)
    print("  Learner Portal")
    print("=" * 60)

    if not os.environ.get("SUPABASE_URL", ""):
        print("\n  WARNING: SUPABASE_URL not set. Set environment variables:")
        print("    SUPABASE_URL, SUPABASE_SERVICE_KEY")
        print("  Continuing anyway for local development...\n")
    if not PAYSTACK_SECRET_KEY:
        print("  WARNING: PAYSTACK_SECRET_KEY not set. Paid checkout is disabled.\n")

    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    url = f"http://{HOST}:{PORT}"
    print(f"  Starting server on {url}")
    print("  Press Ctrl+C to stop\n")

    from learner_portal.app import create_app
    app = create_app()
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL)


if __name__ == "__main__":
    main()
