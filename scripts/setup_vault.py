#!/usr/bin/env python3
"""
Create or update the secrets vault from environment variables.

Writes {"default": {"openai": ..., "huggingface": ..., "milvus": ...}} to
VAULT_PATH (default ~/.book-assistant/vault.json). Existing entries are kept
unless the environment provides a value; use --reset to start from scratch.

Run from project root:

    python scripts/setup_vault.py
    python scripts/setup_vault.py --path /tmp/vault.json --reset
"""

import argparse
import sys
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.core.vault import default_vault_path, keys_from_env, write_vault


def main() -> None:
    parser = argparse.ArgumentParser(description="Write API keys from the environment into the vault file.")
    parser.add_argument("--path", type=Path, default=None, help="Vault file (default: $VAULT_PATH or ~/.book-assistant/vault.json)")
    parser.add_argument("--reset", action="store_true", help="Discard existing vault entries first.")
    args = parser.parse_args()

    keys = keys_from_env()
    path = write_vault(keys, path=args.path or default_vault_path(), merge=not args.reset)
    configured = sorted(name for name, value in keys.items() if value)
    print(f"Vault written to {path}")
    print(f"Keys from environment: {', '.join(configured) or 'none'}")


if __name__ == "__main__":
    main()
