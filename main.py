#!/usr/bin/env python3
"""
Main entry point for the site search system.
"""

import asyncio
import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from sitesearch import __version__
from sitesearch.api import create_app
from sitesearch.application import SiteSearchApp
from sitesearch.utils.config import load_config, Config
from sitesearch.utils.logger import setup_logging


class SiteSearchCLI:
    """Runs one CLI command against a freshly initialized application."""

    def __init__(self):
        self.app: Optional[SiteSearchApp] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)

    async def run(self, config_path: str, args: argparse.Namespace) -> int:
        """Load configuration, initialize the application and dispatch the command."""
        try:
            config = load_config(config_path)
            setup_logging(config.logging)

            self.logger.info("=== SITE SEARCH STARTING ===")
            self.logger.info(f"Configuration loaded from: {config_path}")
            self.logger.info(f"Sites: {[site.url for site in config.sites]}")

            self.app = SiteSearchApp(config)
            await self.app.initialize()

            command = args.command or 'serve'
            if command == 'serve':
                await self._serve(config)
            elif command == 'index':
                self.setup_signal_handlers()
                await self._index()
            elif command == 'index-page':
                return await self._index_page(args.url)
            elif command == 'search':
                return await self._search(args.query, args.site, args.offset, args.limit)
            elif command == 'stats':
                _print_json(await self.app.statistics.get_statistics())

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if self.app:
                await self.app.close()
            self.logger.info("=== SITE SEARCH FINISHED ===")

        return 0

    async def _serve(self, config: Config):
        server = uvicorn.Server(uvicorn.Config(
            create_app(self.app),
            host=config.server.host,
            port=config.server.port,
            log_config=None
        ))
        self.logger.info(f"Serving API on http://{config.server.host}:{config.server.port}")
        await server.serve()

    async def _index(self):
        """Run one full indexing pass, stopping early on a shutdown signal."""
        orchestrator = self.app.orchestrator
        await orchestrator.start_full_indexing()

        run_task = asyncio.create_task(orchestrator.wait())
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        done, pending = await asyncio.wait(
            [run_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if shutdown_task in done:
            self.logger.info("Shutdown requested, stopping indexing...")
            await orchestrator.stop_indexing()

        _print_json(await self.app.statistics.get_statistics())

    async def _index_page(self, url: str) -> int:
        if not await self.app.orchestrator.index_single_page(url):
            print(f"Error: {url} is outside the sites listed in the configuration file")
            return 1
        print(f"Indexed: {url}")
        return 0

    async def _search(self, query: str, site: Optional[str], offset: int, limit: Optional[int]) -> int:
        response = await self.app.search_engine.search(query, site, offset, limit)
        _print_json(response.to_dict())
        return 0 if response.result else 1


def _print_json(payload):
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Site Search: crawler, lemma indexer and search engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                               # Serve the HTTP API with config.yaml
  python main.py --config my_config.yaml       # Use a custom config
  python main.py index                         # Index every configured site once
  python main.py index-page https://example.com/about
  python main.py search "лесные звери" --limit 5
  python main.py stats                         # Print index statistics
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Site Search {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command')

    subparsers.add_parser('serve', help='Serve the HTTP API (default)')
    subparsers.add_parser('index', help='Run a full indexing pass and exit')

    index_page = subparsers.add_parser('index-page', help='Re-index a single page')
    index_page.add_argument('url', help='Page URL under one of the configured sites')

    search = subparsers.add_parser('search', help='Search the index')
    search.add_argument('query', help='Search query')
    search.add_argument('--site', help='Restrict the search to one site URL')
    search.add_argument('--offset', type=int, default=0, help='Results to skip (default: 0)')
    search.add_argument('--limit', type=int, help='Maximum results (default: from config)')

    subparsers.add_parser('stats', help='Print index statistics')

    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    cli = SiteSearchCLI()
    try:
        return asyncio.run(cli.run(args.config, args))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
