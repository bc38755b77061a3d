from __future__ import annotations

from soulbot.config import load_settings
from soulbot.runtime.app import run_main


if __name__ == "__main__":
    run_main(load_settings())
