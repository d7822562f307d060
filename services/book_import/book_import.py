"""Import runner entry point.

Imports every markdown manuscript of the data directory into the metadata
store and the vector index, then moves each file to processed/ or failed/.

Usage:
    python -m services.book_import.book_import [--data-dir DIR] [--force] [--strict]
"""

import argparse
import asyncio
import sys
from pathlib import Path

from services.book_import.ImportService import ImportService
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.meta.MetaClientManager import MetaClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import book manuscripts into the library.")
    parser.add_argument("--data-dir", default=None, help="Directory holding the *.md manuscripts (default: $IMPORT_DATA_DIR or ./data).")
    parser.add_argument("--force", action="store_true", help="Re-import books whose content is unchanged.")
    parser.add_argument("--strict", action="store_true", help="Exit with status 1 if any file failed.")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Run the import pipeline. Returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    if args.data_dir:
        data_dir = Path(args.data_dir).expanduser().resolve()
    else:
        data_dir = config.get_path_val("IMPORT_DATA_DIR", default="data")

    llm_client = LLMClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    meta_client = MetaClientManager(helper_config=config).get_client()

    try:
        # boot all clients. Without any of them there is nothing to import into, so abort.
        try:
            await meta_client.boot()
            if not await meta_client.do_healthcheck():
                logger.error("Metadata store %s is not reachable. Aborting.", meta_client.get_engine_name())
                return 1
            await rag_client.boot()
            if not await rag_client.do_healthcheck():
                logger.error("RAG backend %s is not reachable. Aborting.", rag_client.get_engine_name())
                return 1
            await llm_client.boot()
            if llm_client.has_api_key():
                if not await llm_client.do_healthcheck():
                    logger.error("LLM provider %s is not reachable. Aborting.", llm_client.get_engine_name())
                    return 1
            else:
                logger.warning("No LLM API key configured: books are stored without summaries and vectors.")
            await rag_client.do_ensure_collection()
        except Exception as e:
            logger.error(f"Error booting clients: {e}. Aborting.")
            return 1

        import_service = ImportService(
            helper_config=config,
            llm_client=llm_client,
            rag_client=rag_client,
            meta_client=meta_client,
        )
        report = await import_service.do_import_directory(data_dir, force=args.force)
    finally:
        await llm_client.close()
        await rag_client.close()
        await meta_client.close()

    if args.strict and report.failed:
        return 1
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
