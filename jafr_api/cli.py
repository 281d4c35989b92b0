"""Command-line client: `jafr-analyze NAME MOTHER QUESTION`.

With --local the traditional results are computed in-process (no Flask, no
network). Otherwise the request goes to a running server.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import urllib.error
import urllib.request

from .analysis import AnalysisOptions, AnalysisRequest, traditional_results


def _http_json(method: str, url: str, payload: dict | None = None, headers: dict | None = None,
               timeout: int = 90) -> dict:
    data = None
    all_headers = {"Accept": "application/json", **(headers or {})}
    if payload is not None:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        all_headers["Content-Type"] = "application/json"

    req = urllib.request.Request(url, data=data, headers=all_headers, method=method)
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        raw = resp.read().decode("utf-8")
        return json.loads(raw) if raw else {}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Jafr (Abjad) analysis of a name, mother's name and question.")
    parser.add_argument("name", help="الاسم")
    parser.add_argument("mother", help="اسم الأم")
    parser.add_argument("question", help="السؤال")
    parser.add_argument("--birth-date", default=None, help="Optional birth date, e.g. 1990-05-17")
    parser.add_argument("--local", action="store_true", help="Compute traditional results only, no server call")
    parser.add_argument("--base-url", default="http://127.0.0.1:5000", help="Jafr API base URL")
    parser.add_argument(
        "--api-key",
        default=os.getenv("OPENROUTER_API_KEY"),
        help="Provider key (defaults to $OPENROUTER_API_KEY)",
    )
    parser.add_argument("--no-ai", action="store_true", help="Ask the server to skip the AI narrative")
    parser.add_argument("--brief", action="store_true", help="Omit the per-letter breakdown")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.local:
        request = AnalysisRequest(
            name=args.name.strip(),
            mother=args.mother.strip(),
            question=args.question.strip(),
            birth_date=(args.birth_date or "").strip() or None,
            options=AnalysisOptions(deep_analysis=False, numerology_details=not args.brief),
        )
        missing = request.missing_fields()
        if missing:
            print(f"الحقول التالية مطلوبة: {'، '.join(missing)}", file=sys.stderr)
            return 2
        print(json.dumps(traditional_results(request), ensure_ascii=False, indent=2))
        return 0

    payload = {
        "name": args.name,
        "mother": args.mother,
        "question": args.question,
        "birthDate": args.birth_date,
        "options": {"deepAnalysis": not args.no_ai, "numerologyDetails": not args.brief},
    }
    headers = {"X-API-Key": args.api_key} if args.api_key else {}
    url = f"{args.base_url.rstrip('/')}/api/jafr/analyze"

    try:
        result = _http_json("POST", url, payload=payload, headers=headers)
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace") if hasattr(e, "read") else ""
        print(f"ERROR {e.code}: {body}", file=sys.stderr)
        return 2
    except urllib.error.URLError as e:
        print(f"ERROR: could not reach {url}: {e.reason}", file=sys.stderr)
        return 2

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0 if result.get("success") else 2


if __name__ == "__main__":
    raise SystemExit(main())
