"""rq worker for background jobs (orphan attempt cleanup).

Run with ``quizdeck-worker``; queues come from RQ_WORKER_QUEUES or default to
RQ_QUEUE_DEFAULT.
"""

from __future__ import annotations

import logging

import redis
from rq import Queue, Worker

from quizdeck.core.config import settings


log = logging.getLogger("quizdeck.worker")


def queue_names() -> list[str]:
    names = [q.strip() for q in str(settings.rq_worker_queues or "").split(",") if q.strip()]
    return names or [str(settings.rq_queue_default)]


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    conn = redis.Redis.from_url(settings.redis_url)
    queues = [Queue(name, connection=conn) for name in queue_names()]
    log.info("worker listening on %s", ", ".join(q.name for q in queues))
    Worker(queues, connection=conn).work(with_scheduler=False)


if __name__ == "__main__":
    main()
