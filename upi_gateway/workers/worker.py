"""
RQ Worker bootstrap
"""

from rq import Worker, Queue

from upi_gateway.infrastructure.logging_config import setup_logging
from upi_gateway.infrastructure.redis_client import get_redis
from upi_gateway.infrastructure.settings import get_settings
from upi_gateway.workers.jobs import send_collect_request, expire_pending_payments_job  # noqa: F401 - register jobs

if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    redis_conn = get_redis()
    worker = Worker([Queue(settings.COLLECT_REQUESTS_QUEUE, connection=redis_conn)], connection=redis_conn)
    worker.work()
