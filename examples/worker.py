#!/usr/bin/env python3
"""
Worker - oppgave demo

Consumes Task objects from a queue in Redis and prints them. Tasks whose
payload contains "fail": true are moved to the failed list.

Run modes:
  python worker.py                      # Work on queue `default` until Ctrl-C
  python worker.py --max-tasks 10       # Stop after 10 tasks
  python worker.py --reaper             # Also requeue tasks stranded by crashed workers

Connection settings come from OPPGAVE_* environment variables (see QueueConfig).
"""

import argparse
import asyncio
import logging
import signal
import sys

from oppgave import (
    HandlerFailureMode,
    PydanticCodec,
    Queue,
    QueueConfig,
    Reaper,
    RedisListStore,
    Task,
    Worker,
)

logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


def handle(task: Task) -> None:
    if task.payload.get("fail"):
        raise ValueError(f"Task {task.id} asked to fail")
    print(f"Task: {task.kind} {task.payload}")


async def run_worker(config: QueueConfig, max_tasks: int | None, with_reaper: bool) -> None:
    store = RedisListStore.from_url(config.redis_url, pool_size=config.pool_size)
    queue = Queue(config.queue_name, store, PydanticCodec(Task), key_prefix=config.key_prefix)
    worker = Worker(
        queue,
        handle,
        poll_timeout=config.poll_timeout,
        handler_failure_mode=HandlerFailureMode.FAIL,
        handler_timeout=config.handler_timeout,
        max_tasks=max_tasks,
        max_consecutive_store_failures=config.max_consecutive_store_failures,
    )
    reaper = Reaper(queue, config.visibility_timeout, config.reaper_interval) if with_reaper else None

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except NotImplementedError:
            pass

    print(f"Starting worker with queue `{queue.name}`")
    reaper_task = asyncio.create_task(reaper.run()) if reaper else None
    try:
        stats = await worker.run()
        print(f"Done: {stats.tasks_acked} acked, {stats.tasks_failed} failed")
    finally:
        if reaper_task is not None:
            reaper.stop()
            reaper_task.cancel()
            try:
                await reaper_task
            except asyncio.CancelledError:
                pass
        await store.close()


def main() -> None:
    config = QueueConfig.from_env()
    parser = argparse.ArgumentParser(description="oppgave worker demo")
    parser.add_argument("--queue", "-q", default=config.queue_name, help="Queue name")
    parser.add_argument("--max-tasks", type=int, default=None, help="Stop after N tasks")
    parser.add_argument("--reaper", action="store_true", help="Run the in-flight reaper alongside")
    args = parser.parse_args()

    config = config.model_copy(update={"queue_name": args.queue})
    asyncio.run(run_worker(config, args.max_tasks, args.reaper))


if __name__ == "__main__":
    main()
