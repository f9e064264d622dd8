#!/usr/bin/env python3
"""
Expiry Sweeper Runner

Starts the periodic sweep of expired verification requests in the
foreground. Configuration comes from the environment / .env file.
"""

import sys

from config import AppSettings
from services.factory import build_verification_service
from shared.logging import setup_logging
from workers.expiry_sweeper import ExpirySweeper


def main():
    """Build the service from settings and sweep until interrupted."""
    settings = AppSettings()
    setup_logging(settings.logging.log_level, settings.logging.log_format)

    sweeper = ExpirySweeper(
        build_verification_service(settings),
        interval_seconds=settings.verification.sweep_interval_seconds,
    )
    try:
        sweeper.run_forever()
    except KeyboardInterrupt:
        sweeper.stop()
        print("\nSweeper stopped by user")
    except Exception as e:
        print(f"\nSweeper failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
