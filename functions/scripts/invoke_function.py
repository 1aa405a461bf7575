"""
Invoke playground functions or upload a file from the command line.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from playground.client import DEFAULT_BUCKET, FunctionsClient, FunctionsError

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Functions playground client")
    parser.add_argument(
        "--base-url",
        default=os.getenv("FUNCTIONS_URL", "http://localhost:8000/functions/v1"),
        help="Functions base URL",
    )
    parser.add_argument(
        "--api-key",
        default=os.getenv("SUPABASE_ANON_KEY", ""),
        help="Project anon/publishable key",
    )
    parser.add_argument(
        "--token",
        default=os.getenv("ACCESS_TOKEN"),
        help="User access token (defaults to the api key)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    invoke_parser = subparsers.add_parser("invoke", help="Call a function by name")
    invoke_parser.add_argument("name")
    invoke_parser.add_argument("-X", "--method", default="POST")
    invoke_parser.add_argument("-d", "--data", default=None, help="JSON request body")
    invoke_parser.add_argument(
        "-p", "--param", action="append", default=[], help="Query parameter key=value"
    )

    upload_parser = subparsers.add_parser("upload", help="Upload via a signed URL")
    upload_parser.add_argument("file", type=Path)
    upload_parser.add_argument("-b", "--bucket", default=DEFAULT_BUCKET)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    client = FunctionsClient(args.base_url, args.api_key, access_token=args.token)
    try:
        if args.command == "invoke":
            body = json.loads(args.data) if args.data else None
            params = dict(item.split("=", 1) for item in args.param) or None
            result = client.invoke(args.name, method=args.method, body=body, params=params)
            print(json.dumps(result, indent=2) if not isinstance(result, str) else result)
        else:
            result = client.upload_file(args.file, bucket=args.bucket)
            print(json.dumps({"path": result.path, "bucketName": result.bucket_name}, indent=2))
    except FunctionsError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
