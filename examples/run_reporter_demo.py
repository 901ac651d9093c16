"""
Demo script for the InfluxDB reporter.

Simulates a host process updating metrics while the reporter forwards them
to InfluxDB in the background. Point METRICS_REPORTER_URL at a running
InfluxDB 1.x (defaults to http://localhost:8086); with no server running the
reporter keeps logging write/ping failures and retrying.
"""

import asyncio
import random

from loguru import logger

from metrics_reporter import (
    Counter,
    FloatGauge,
    Histogram,
    Meter,
    MetricsRegistry,
    Reporter,
    Timer,
)


async def handle_request(registry: MetricsRegistry) -> None:
    timer = registry.get_or_register("requests.latency", Timer)
    with timer.time():
        # Simulate I/O latency
        await asyncio.sleep(random.uniform(0.001, 0.02))
    registry.get_or_register("requests", Counter).inc()
    registry.get_or_register("requests.rate", Meter).mark()
    registry.get_or_register("requests.size", Histogram).update(random.randint(200, 4000))


async def main():
    registry = MetricsRegistry()
    load = registry.get_or_register("cpu.load", FloatGauge)

    async with Reporter.from_settings(registry) as rep:
        logger.info(f"Reporting every {rep.interval}s - producing traffic for 30s")
        for i in range(3_000):
            await handle_request(registry)
            load.update(random.random())
            if i % 500 == 0:
                logger.info(
                    f"Progress: {i}/3000 | connection={rep.supervisor.state.value}"
                )

    logger.info("Reporter demo complete")


if __name__ == "__main__":
    asyncio.run(main())
