# ddhq/workers/enqueuer.py
#
# Queue an ingest job per post id listed in POSTS_FILE:
#
#   posts:
#     - 12345
#     - 12346
#
# Extra ids can be passed on the command line.
import logging
import os
import sys

import yaml
from redis import Redis

from ddhq.api.app.config import settings
from ddhq.workers.jobs import enqueue_ingest

POSTS_FILE = os.getenv("POSTS_FILE", os.path.join(os.path.dirname(__file__), "posts.yaml"))

log = logging.getLogger("ddhq.workers")


def load_post_ids(path: str) -> list[int]:
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    ids: list[int] = []
    for item in (cfg.get("posts") or []):
        pid = item.get("id") if isinstance(item, dict) else item
        try:
            ids.append(int(pid))
        except (TypeError, ValueError):
            log.warning("[enqueuer] skipping bad post id %r", pid)
    return ids


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    conn = Redis.from_url(settings.redis_url)

    ids = load_post_ids(POSTS_FILE)
    for arg in (sys.argv[1:] if argv is None else argv):
        ids.append(int(arg))

    total = 0
    for pid in dict.fromkeys(ids):
        job = enqueue_ingest(pid, conn=conn)
        log.info("enqueued %s", job.id)
        total += 1

    log.info("enqueued total: %s", total)

if __name__ == "__main__":
    main()
