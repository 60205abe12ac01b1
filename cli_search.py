"""Terminal client that reuses the in-process search logic."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable

from course_search.config import settings
from course_search.errors import EngineUnavailableError, InvalidRequestError
from course_search.es_client import get_client
from course_search.models import SearchRequest, SearchResponse
from course_search.search import search_courses
from course_search.suggest import suggest_courses

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


async def perform_query(request: SearchRequest) -> SearchResponse:
    return await search_courses(get_client(), settings.es_index, request)


def run_query(request: SearchRequest) -> int:
    try:
        response = asyncio.run(perform_query(request))
    except InvalidRequestError as exc:
        print(f"{RED}Invalid request:{RESET} {exc}")
        return 2
    except EngineUnavailableError as exc:
        print(f"{RED}Search failed:{RESET} {exc}")
        return 1
    pretty_print_response(request.q or "", response)
    return 0


def pretty_print_response(query: str, payload: SearchResponse) -> None:
    color = GREEN if payload.total else RED
    print(
        f"Query: {query!r} | total: {color}{payload.total}{RESET} | "
        f"page {payload.page + 1}/{max(payload.totalPages, 1)}"
    )
    offset = payload.page * payload.size
    for idx, course in enumerate(payload.courses, start=offset + 1):
        price = f"{course.price:.2f}" if course.price is not None else "-"
        course_type = course.type.value if course.type else "-"
        print(
            f"  {idx:02d}. {course.title} | {course.category or '-'} | {course_type} | "
            f"ages {course.minAge}-{course.maxAge} | {price} | {course.nextSessionDate:%Y-%m-%d %H:%M}"
        )


def interactive_shell(base: SearchRequest) -> None:
    print("Interactive course search. Prefix a line with '?' for suggestions, 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        if query.startswith("?"):
            print_suggestions(query[1:])
            continue
        run_query(base.model_copy(update={"q": query}))


def print_suggestions(prefix: str) -> None:
    suggestions = asyncio.run(suggest_courses(get_client(), settings.es_index, prefix))
    if not suggestions:
        print("  (no suggestions)")
    for suggestion in suggestions:
        print(f"  {suggestion}")


def batch_mode(file_path: Path, base: SearchRequest) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if not query:
                continue
            run_query(base.model_copy(update={"q": query}))


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the course search service")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--suggest", action="store_true", help="Print autocomplete suggestions for the query")
    parser.add_argument("--min-age", type=int)
    parser.add_argument("--max-age", type=int)
    parser.add_argument("--category")
    parser.add_argument("--type", dest="course_type", help="ONE_TIME, COURSE or CLUB")
    parser.add_argument("--min-price", type=float)
    parser.add_argument("--max-price", type=float)
    parser.add_argument("--start-date", help="ISO-8601 local date-time, e.g. 2025-08-01T00:00")
    parser.add_argument("--sort", default="upcoming", choices=["upcoming", "priceAsc", "priceDesc"])
    parser.add_argument("--page", type=int, default=0)
    parser.add_argument("--size", type=int, default=10)
    args = parser.parse_args(list(argv) if argv is not None else None)

    base = SearchRequest(
        minAge=args.min_age,
        maxAge=args.max_age,
        category=args.category,
        type=args.course_type,
        minPrice=args.min_price,
        maxPrice=args.max_price,
        startDate=args.start_date,
        sort=args.sort,
        page=args.page,
        size=args.size,
    )

    if args.suggest:
        print_suggestions(args.query or "")
        return 0
    if args.batch:
        batch_mode(args.batch, base)
        return 0
    if args.query:
        return run_query(base.model_copy(update={"q": args.query}))
    interactive_shell(base)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
