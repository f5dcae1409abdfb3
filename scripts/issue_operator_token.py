#!/usr/bin/env python3
"""
Mint an operator bearer token for the /platforms endpoints.

Usage (from project root): python scripts/issue_operator_token.py <operator-id> [minutes]
"""

import sys
import os

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

# Load .env file
from dotenv import load_dotenv
load_dotenv(os.path.join(project_root, ".env"))

from src.auth.jwt import create_operator_token


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/issue_operator_token.py <operator-id> [minutes]")
        sys.exit(1)

    operator_id = sys.argv[1].strip()
    minutes = int(sys.argv[2]) if len(sys.argv) > 2 else None
    if not operator_id:
        print("Error: operator id must not be empty")
        sys.exit(1)

    print(create_operator_token(operator_id, expires_minutes=minutes))


if __name__ == "__main__":
    main()
