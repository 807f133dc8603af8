"""Solve one optimization request from the command line.

Usage:
    python scripts/optimize.py request.json
    python scripts/optimize.py request.json --mode all_weather_maximin
    cat request.json | python scripts/optimize.py -

Prints the response JSON. Exit code 0 for ok/infeasible results, 2 when the
request is rejected.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stakesplit.optimizer import ValidationError, optimize

logger = logging.getLogger(__name__)


def _load(source: str) -> object:
    if source == "-":
        return json.load(sys.stdin)
    return json.loads(Path(source).read_text(encoding="utf-8"))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Split a budget across candidates")
    parser.add_argument("request", help="Request JSON file, or - for stdin")
    parser.add_argument("--mode", default=None, help="Override the request's mode")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        payload = _load(args.request)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read request: {e}")
        print(json.dumps({"status": "error", "notes": ["Invalid JSON payload."]}))
        return 2

    if args.mode and isinstance(payload, dict):
        payload["mode"] = args.mode

    try:
        response = optimize(payload)
    except ValidationError as e:
        response = {"status": "error", "notes": e.notes}
        print(json.dumps(response, indent=args.indent or None, ensure_ascii=False))
        return 2

    print(json.dumps(response, indent=args.indent or None, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
