#!/usr/bin/env python3
"""Run AI condition analysis over local photo files and print the summary as JSON.

Usage: analyze_photos.py [--expected-size SIZE] CATEGORY:PATH [CATEGORY:PATH ...]
CATEGORY is exterior, interior or problem_area (default exterior when omitted).
"""

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from application/ or repo root so ANTHROPIC_API_KEY etc. are set
_app_dir = Path(__file__).resolve().parent.parent
_repo_root = _app_dir.parent
load_dotenv(_app_dir / ".env")
load_dotenv(_repo_root / ".env")
load_dotenv(_repo_root / ".env.local")

from detail_quote.aggregator import PhotoInput, aggregate
from detail_quote.errors import QuoteEngineError


def _photo(arg: str) -> PhotoInput:
    category, sep, path = arg.partition(":")
    if not sep:
        category, path = "exterior", arg
    return PhotoInput(image=Path(path).read_bytes(), category=category)


def main():
    parser = argparse.ArgumentParser(description="Analyze vehicle condition photos")
    parser.add_argument("photos", nargs="+", help="CATEGORY:PATH or PATH")
    parser.add_argument("--expected-size", default=None, help="expected vehicle type, e.g. sedan or van")
    args = parser.parse_args()

    try:
        photos = [_photo(a) for a in args.photos]
        summary = aggregate(photos, args.expected_size)
    except OSError as e:
        print(f"Error reading photo: {e}", file=sys.stderr)
        sys.exit(1)
    except QuoteEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(summary.to_dict(), indent=2))


if __name__ == "__main__":
    main()
