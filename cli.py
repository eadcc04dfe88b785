#!/usr/bin/env python3
"""Simple CLI for running the news pipeline locally"""

import argparse
import asyncio
import sys
from typing import List, Optional

from app.config import settings
from app.db.session import create_news_store
from app.logging_config import setup_logging
from app.services.news_fetcher.models import NewsArticle, NewsFilters, NewsSortOption, SortDirection
from app.services.news_fetcher.query import NewsQueryService
from app.services.news_fetcher.service import NewsAggregationError, NewsFetcherService


def print_articles(articles: List[NewsArticle], total: int, page: int, has_more: bool):
    """Pretty print one page of the feed"""
    if not articles:
        print("❌ No articles found")
        return

    print(f"\n📰 News Feed (page {page}, {total} matching)")
    print("=" * 70)

    for i, article in enumerate(articles, 1):
        sentiment = article.sentiment.value if article.sentiment else "-"
        published = article.published_at.strftime("%Y-%m-%d %H:%M")
        print(f"{i:2d}. [{article.category.value:<10}] {article.title}")
        print(f"    {article.source_name} | {published} | impact {article.impact_score:.1f} | sentiment {sentiment}")
        if article.tags:
            print(f"    tags: {', '.join(article.tags)}")
        print(f"    {article.url}")

    if has_more:
        print(f"\n➡️  More results on page {page + 1}")


async def cli_fetch(database_url: Optional[str]) -> int:
    """CLI command to run one aggregation"""
    print("🔄 Fetching news from all sources...")

    engine, store = await create_news_store(database_url)
    service = NewsFetcherService(store=store)
    try:
        await service.aggregate_all_news()
    except NewsAggregationError as e:
        print(f"❌ Aggregation failed: {e}")
        return 1
    finally:
        await service.close()
        await engine.dispose()

    summary = service.last_run
    if summary is not None:
        print(f"✅ Fetched {summary.fetched} articles, {summary.inserted} new, {summary.duplicates} duplicates")
        if summary.used_sample_fallback:
            print("ℹ️  No live source returned articles, sample data was used")
        for source, error in summary.source_errors.items():
            print(f"⚠️  {source}: {error}")
    return 0


async def cli_news(args: argparse.Namespace) -> int:
    """CLI command to list stored articles"""
    filters = NewsFilters(
        sources=args.source or [],
        categories=args.category or [],
        sentiment=args.sentiment,
        search=args.search,
    )

    engine, store = await create_news_store(args.database_url)
    try:
        result = await NewsQueryService(store).get_news(
            filters=filters,
            sort=args.sort,
            direction=args.direction,
            page=args.page,
            page_size=args.page_size,
        )
    finally:
        await engine.dispose()

    print_articles(result.articles, result.total, result.page, result.has_more)
    return 0


async def cli_stats(database_url: Optional[str]) -> int:
    """CLI command to show feed statistics"""
    engine, store = await create_news_store(database_url)
    try:
        service = NewsQueryService(store)
        stats = await service.get_news_stats()
        sources = await service.get_sources()
        categories = await service.get_categories()
    finally:
        await engine.dispose()

    print("\n📊 News Stats")
    print("=" * 50)
    print(f"Articles:    {stats.total_articles}")
    print(f"Sources:     {stats.sources_count} ({', '.join(s.display_name for s in sources) or '-'})")
    print(f"Categories:  {stats.categories_count} ({', '.join(c.display_name for c in categories) or '-'})")
    print(f"Last update: {stats.last_update.isoformat()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AIForecast Hub News CLI")
    parser.add_argument("--database-url", help="Override the configured database URL")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("fetch", help="Run one aggregation from all sources")

    news_parser = subparsers.add_parser("news", help="List stored articles")
    news_parser.add_argument("--category", action="append", help="Filter by category (repeatable)")
    news_parser.add_argument("--source", action="append", help="Filter by source id (repeatable)")
    news_parser.add_argument("--sentiment", help="Filter by sentiment label")
    news_parser.add_argument("--search", help="Case-insensitive text in title or summary")
    news_parser.add_argument(
        "--sort",
        default=NewsSortOption.PUBLISHED_AT.value,
        choices=[option.value for option in NewsSortOption],
    )
    news_parser.add_argument(
        "--direction",
        default=SortDirection.DESC.value,
        choices=[direction.value for direction in SortDirection],
    )
    news_parser.add_argument("--page", type=int, default=1)
    news_parser.add_argument("--page-size", type=int, default=settings.news_default_page_size)

    subparsers.add_parser("stats", help="Show article, source and category counts")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(console=True)

    if args.command == "fetch":
        return await cli_fetch(args.database_url)

    elif args.command == "news":
        if args.page < 1 or args.page_size < 1:
            print("❌ Page and page size must be positive")
            return 2
        return await cli_news(args)

    elif args.command == "stats":
        return await cli_stats(args.database_url)

    print(f"❌ Unknown command: {args.command}")
    parser.print_help()
    return 2


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
