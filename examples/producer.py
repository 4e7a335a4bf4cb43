#!/usr/bin/env python3
"""
Producer - oppgave demo

Pushes Task objects onto a queue in Redis.

Run modes:
  python producer.py                     # Push one task {"id": 42}
  python producer.py --count 100         # Push 100 tasks
  python producer.py --queue emails      # Push to another queue

Connection settings come from OPPGAVE_* environment variables (see QueueConfig).
"""

import argparse
import asyncio
import logging
import sys

from oppgave import PydanticCodec, Queue, QueueConfig, RedisListStore, Task
from oppgave.core.logging import get_logger

logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


async def produce(config: QueueConfig, count: int, kind: str) -> None:
    store = RedisListStore.from_url(config.redis_url, pool_size=config.pool_size)
    queue = Queue(config.queue_name, store, PydanticCodec(Task), key_prefix=config.key_prefix)
    log = get_logger("oppgave.producer")
    try:
        for i in range(count):
            task = Task(kind=kind, payload={"id": 42 + i})
            await queue.push(task)
            log.info(f"Pushed {task.id}", extra={"queue": queue.name, "task_id": task.id})
        log.info(f"{await queue.size()} tasks pending on {queue.keys.pending}")
    finally:
        await store.close()


def main() -> None:
    config = QueueConfig.from_env()
    parser = argparse.ArgumentParser(description="oppgave producer demo")
    parser.add_argument("--queue", "-q", default=config.queue_name, help="Queue name")
    parser.add_argument("--count", "-n", type=int, default=1, help="Number of tasks to push")
    parser.add_argument("--kind", default="job", help="Task kind")
    args = parser.parse_args()

    config = config.model_copy(update={"queue_name": args.queue})
    asyncio.run(produce(config, args.count, args.kind))


if __name__ == "__main__":
    main()
