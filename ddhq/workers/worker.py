import logging

from redis import Redis
from rq import Queue, Worker

from ddhq.api.app.config import settings


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    conn = Redis.from_url(settings.redis_url)
    q_ingest = Queue(settings.ingest_queue, connection=conn)
    worker = Worker([q_ingest], connection=conn)
    worker.work(with_scheduler=True)

if __name__ == "__main__":
    main()
