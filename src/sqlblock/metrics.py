from threading import Lock

from prometheus_client import Counter, Gauge, Histogram, start_http_server
from loguru import logger

# Ingestion metrics
INGEST_RESULTS = Counter(
    'sqlblock_ingest_results_total',
    'Ingestion attempts by classified outcome',
    ['status']
)

ROWS_WRITTEN = Counter(
    'sqlblock_rows_written_total',
    'Rows created by ingested blocks',
    ['table']
)

LATEST_INGESTED_BLOCK = Gauge(
    'sqlblock_latest_ingested_block_height',
    'Highest block height ingested by this process'
)

EXECUTION_LATENCY = Histogram(
    'sqlblock_execution_latency_seconds',
    'Time spent running one block statement against the database',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

UNKNOWN_OUTCOMES = Counter(
    'sqlblock_unknown_outcomes_total',
    'Statement executions that ended with an unknown outcome'
)


# Highest height this process has written, mirrored into LATEST_INGESTED_BLOCK
_latest_height = None
_latest_lock = Lock()


def record_result(result, duration: float | None = None) -> None:
    """Update metrics for one classified ingestion result"""
    global _latest_height
    INGEST_RESULTS.labels(status=result.status.value).inc()
    if duration is not None:
        EXECUTION_LATENCY.observe(duration)
    if result.rows.blocks:
        ROWS_WRITTEN.labels(table='block').inc(result.rows.blocks)
        ROWS_WRITTEN.labels(table='transaction').inc(result.rows.transactions)
        ROWS_WRITTEN.labels(table='event').inc(result.rows.events)
        with _latest_lock:
            if _latest_height is None or result.height > _latest_height:
                _latest_height = result.height
                LATEST_INGESTED_BLOCK.set(result.height)


def start_metrics_server(port: int = 8000, addr: str = '0.0.0.0'):
    """Start Prometheus metrics server

    Args:
        port (int): Port to listen on
        addr (str): Address to bind to (default: all interfaces)
    """
    logger.info(f"Starting Prometheus metrics server on {addr}:{port}")
    start_http_server(port, addr)

    # Pre-create the labelled series so dashboards see zeros instead of gaps
    for status in ('ingested', 'duplicate', 'rejected', 'failed'):
        INGEST_RESULTS.labels(status=status).inc(0)
    for table in ('block', 'transaction', 'event'):
        ROWS_WRITTEN.labels(table=table).inc(0)

    logger.info("All metrics initialized")
