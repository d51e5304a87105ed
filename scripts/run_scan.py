import argparse
import json
import logging
from pathlib import Path

from webmcp_auto.config import get_settings
from webmcp_auto.scanner.orchestrator import Instrumentor


def main():
    parser = argparse.ArgumentParser(description="Scan a page and print the generated WebMCP tool manifest")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--html", type=Path, help="Local HTML file to scan")
    source.add_argument("--url", help="Live page to load in a browser and scan")
    parser.add_argument("--base-url", default="http://localhost/", help="Location used to resolve links in --html")
    parser.add_argument("--prefix", default=None, help="Tool name prefix")
    parser.add_argument("--exclude", action="append", default=None, help="CSS selector to skip (repeatable)")
    parser.add_argument("--include", action="append", default=None, help="Extra CSS selector to scan (repeatable)")
    parser.add_argument("--max-tools", type=int, default=None)
    parser.add_argument("--quiet", action="store_true", help="Only print the manifest")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO)

    overrides = {"watch": False, "debug": not args.quiet}
    if args.prefix is not None:
        overrides["prefix"] = args.prefix
    if args.exclude:
        overrides["exclude"] = args.exclude
    if args.include:
        overrides["include"] = args.include
    if args.max_tools is not None:
        overrides["max_tools"] = args.max_tools
    settings = get_settings(**overrides)

    if args.html:
        from webmcp_auto.scanner.soup_host import SoupDocument

        document = SoupDocument(args.html.read_text(encoding="utf-8"), url=args.base_url)
        instrumentor = Instrumentor(document, settings=settings)
        instrumentor.scan()
        print(json.dumps(instrumentor.get_tool_manifest(), indent=2))
        return

    from webmcp_auto.scanner.browser import BrowserSession

    with BrowserSession(headless=settings.headless) as browser:
        browser.goto(args.url)
        instrumentor = Instrumentor(browser.document(), settings=settings)
        instrumentor.scan()
        print(json.dumps(instrumentor.get_tool_manifest(), indent=2))


if __name__ == "__main__":
    main()
