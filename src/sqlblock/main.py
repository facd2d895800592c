import argparse
import asyncio
import sys
import time

from loguru import logger

from sqlblock.database import create_db_engine, init_db
from sqlblock.execution import SQLAlchemyExecutor
from sqlblock.ingestor import BlockIngestor
from sqlblock.metrics import start_metrics_server
from sqlblock.parsers import load_block
from sqlblock.utils import load_config, setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sqlblock",
        description="Ingest decoded block JSON files into a relational store, atomically and idempotently.",
    )
    parser.add_argument("blocks", nargs="+", help="Block JSON files to ingest")
    parser.add_argument("-c", "--config", default="config.yml", help="Path to the config file (default: config.yml)")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)

    setup_logging(config.logging.level, config.logging.file)

    if config.metrics.enabled:
        start_metrics_server(config.metrics.port, addr=config.metrics.addr)

    blocks = []
    for path in args.blocks:
        try:
            blocks.append(load_block(path))
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to decode {path}: {type(e).__name__}: {e}")
            return 1

    engine = create_db_engine(config.database.url, pool_size=config.database.pool_size)
    if config.database.create_schema:
        init_db(engine)

    executor = SQLAlchemyExecutor(engine, statement_timeout_ms=config.database.statement_timeout_ms)
    ingestor = BlockIngestor(
        executor,
        timeout=config.ingest.timeout,
        retries=config.ingest.retries,
        base_delay=config.ingest.base_delay,
        concurrency=config.ingest.concurrency,
    )

    start_time = time.time()
    try:
        results = await ingestor.ingest_many(blocks)
    finally:
        engine.dispose()

    failed = [result for result in results if not result.ok]
    logger.info(
        f"Processed {len(results)} blocks in {time.time() - start_time:.2f} seconds, "
        f"{len(results) - len(failed)} stored, {len(failed)} not stored"
    )
    return 1 if failed else 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Program interrupted by user. Exiting.")
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
