import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from enhanced_fetch.config.profiles import load_profile
from enhanced_fetch.config.settings import get_settings
from enhanced_fetch.core.exceptions import FetchError
from enhanced_fetch.models.request import HttpMethod, RequestConfig, ResponseType
from enhanced_fetch.models.response import Blob
from enhanced_fetch.services.client import fetch_enhanced


def _parse_pairs(items: List[str], sep: str, what: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for item in items:
        if sep not in item:
            raise SystemExit(f"❌ Invalid {what} '{item}', expected 'name{sep}value'")
        name, value = item.split(sep, 1)
        result[name.strip()] = value.strip()
    return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="enhanced-fetch",
        description="HTTP request with retries, backoff and response decoding",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", help="Absolute URL")
    parser.add_argument(
        "--method", "-X",
        type=str.upper,
        choices=[m.value for m in HttpMethod],
        default=None,
        help="HTTP method (default: GET).",
    )
    parser.add_argument(
        "--header", "-H",
        action="append",
        default=[],
        help="Request header 'Name: value'. Can be repeated.",
    )
    parser.add_argument(
        "--query", "-q",
        action="append",
        default=[],
        help="Query parameter 'key=value'. Can be repeated.",
    )
    body = parser.add_mutually_exclusive_group()
    body.add_argument("--data", "-d", type=str, default=None, help="Raw request body (sent as is, an empty string included).")
    body.add_argument("--json", "-j", type=str, default=None, help="JSON request body (validated before sending).")
    parser.add_argument("--retries", "-r", type=int, default=None, help="Retries after the first attempt.")
    parser.add_argument("--retry-delay", type=float, default=None, help="Base backoff delay, ms.")
    parser.add_argument("--timeout", "-t", type=float, default=None, help="Per-attempt timeout, ms (0 disables).")
    parser.add_argument(
        "--response-type",
        type=str,
        choices=[t.value for t in ResponseType],
        default=None,
        help="How to decode the response body (default: auto).",
    )
    parser.add_argument("--profile", type=Path, default=None, help="YAML file with request profiles.")
    parser.add_argument("--profile-name", "-p", type=str, default=None, help="Profile name inside --profile.")
    parser.add_argument("--output", "-o", type=Path, default=None, help="Write the body to a file.")
    parser.add_argument("--debug", action="store_true", default=False, help="Log every attempt and failure.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> RequestConfig:
    """Пресет из YAML -> поверх явные флаги CLI."""
    settings = get_settings()
    options: Dict[str, Any] = {}

    if args.profile_name:
        path = args.profile or settings.PROFILES_PATH
        options.update(load_profile(path, args.profile_name))

    headers = dict(options.get("headers") or {})
    headers.update(_parse_pairs(args.header, ":", "header"))
    if headers:
        options["headers"] = headers

    query = dict(options.get("query") or {})
    query.update(_parse_pairs(args.query, "=", "query parameter"))
    if query:
        options["query"] = query

    if args.json is not None:
        try:
            options["body"] = json.loads(args.json)
        except json.JSONDecodeError as e:
            raise SystemExit(f"❌ --json is not valid JSON: {e}")
    elif args.data is not None:
        options["body"] = args.data

    overrides = {
        "method": args.method,
        "retries": args.retries,
        "retry_delay": args.retry_delay,
        "timeout": args.timeout,
        "response_type": args.response_type,
    }
    options.update({k: v for k, v in overrides.items() if v is not None})
    if args.debug:
        options["debug"] = True

    return RequestConfig.from_settings(settings, **options)


def render(result: Any, output: Optional[Path] = None) -> None:
    if isinstance(result, Blob):
        result = result.content

    if isinstance(result, (bytes, bytearray)):
        if output:
            output.write_bytes(result)
        else:
            sys.stdout.buffer.write(result)
        return

    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(result, ensure_ascii=False, indent=2)

    if output:
        output.write_text(text, encoding="utf-8")
    else:
        print(text)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if (args.debug or settings.DEBUG) else settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except (FileNotFoundError, KeyError, ValueError) as e:
        # ValidationError pydantic - тоже ValueError
        raise SystemExit(f"❌ {e}")

    try:
        result = asyncio.run(fetch_enhanced(args.url, config))
    except FetchError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        print(e.to_detail().model_dump_json(indent=2), file=sys.stderr)
        return 1

    render(result, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
