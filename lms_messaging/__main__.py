# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Run the messaging API with uvicorn.

Usage:
    python -m lms_messaging
"""

import uvicorn

from lms_messaging.core.config import get_settings


def main() -> None:
    """Start uvicorn with the API settings."""
    api = get_settings().api
    uvicorn.run(
        "lms_messaging.api.app:create_app",
        factory=True,
        host=api.host,
        port=api.port,
        workers=None if api.reload else api.workers,
        reload=api.reload,
    )


if __name__ == "__main__":
    main()
