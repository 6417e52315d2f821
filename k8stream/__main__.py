"""Entry point for `python -m k8stream`.

Usage:
    python -m k8stream
"""

from __future__ import annotations

import asyncio

from k8stream.app import main

asyncio.run(main())
