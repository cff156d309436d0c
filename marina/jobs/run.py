import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import async_sessionmaker

from marina.infra.db import get_session_factory
from marina.infra.logging import clear_log_context, configure_logging
from marina.infra.metrics import configure_metrics, metrics
from marina.jobs import immediate_payments
from marina.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_JOBS = ["immediate-payments", "overdue-payments"]


async def _run_job(
    name: str,
    session_factory: async_sessionmaker,
    runner: Callable[[object], Awaitable[dict[str, int]]],
) -> dict[str, int]:
    try:
        async with session_factory() as session:
            result = await runner(session)
        logger.info("job_complete", extra={"extra": {"job": name, **result}})
        return result
    finally:
        clear_log_context()


def _job_runner(name: str) -> Callable:
    if name == "immediate-payments":
        return lambda session: immediate_payments.run_immediate_payment_check(session)
    if name == "overdue-payments":
        return lambda session: immediate_payments.run_overdue_payments(session)
    raise ValueError(f"unknown_job:{name}")


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run payment schedule jobs")
    parser.add_argument("--job", action="append", dest="jobs", help="Job name to run")
    parser.add_argument("--interval", type=int, default=30, help="Seconds between loops when not using --once")
    parser.add_argument("--once", action="store_true", help="Run jobs once and exit")
    args = parser.parse_args(argv)

    configure_logging()
    configure_metrics(settings.metrics_enabled)
    session_factory = get_session_factory()

    job_names = args.jobs or DEFAULT_JOBS
    runners = [_job_runner(name) for name in job_names]

    while True:
        for name, runner in zip(job_names, runners):
            try:
                await _run_job(name, session_factory, runner)
            except Exception as exc:  # noqa: BLE001
                metrics.record_job_error(name)
                logger.warning("job_failed", extra={"extra": {"job": name, "reason": type(exc).__name__}})
        if args.once:
            break
        await asyncio.sleep(max(args.interval, 1))


if __name__ == "__main__":
    asyncio.run(main())
