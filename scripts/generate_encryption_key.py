"""
Generate a TOKEN_ENCRYPTION_KEY for the encrypted credential store.

Usage:
    python scripts/generate_encryption_key.py
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.security import generate_encryption_key


def main():
    key = generate_encryption_key()
    print("Add this line to your .env file:\n")
    print(f"TOKEN_ENCRYPTION_KEY={key}")


if __name__ == "__main__":
    main()
