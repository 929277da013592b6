"""
Entry point for running the customer status detector as a module.

Usage: python -m spectra.poller
"""
import asyncio
from spectra.poller.status_detector import main

if __name__ == "__main__":
    asyncio.run(main())
