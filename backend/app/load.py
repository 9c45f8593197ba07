"""CPU burners used to exercise autoscaling. They do not touch the pipeline."""
import asyncio
import math
import time

ITERATIONS_PER_INTENSITY = 1_000_000
STRESS_BURST_ITERATIONS = 100_000
STRESS_PAUSE_SECONDS = 0.01


def burn_cpu(intensity: int, scale: int = ITERATIONS_PER_INTENSITY) -> float:
    result = 0.0
    for i in range(intensity * scale):
        result += math.sqrt(i) * math.sin(i) * math.cos(i)
    return result


def _stress_burst() -> float:
    result = 0.0
    for i in range(STRESS_BURST_ITERATIONS):
        result += math.sqrt(i) * math.log(i + 1)
    return result


async def stress(duration: float) -> int:
    """Burn CPU in short bursts until ``duration`` seconds have passed.

    Yields to the event loop between bursts. Returns the number of bursts.
    """
    start = time.perf_counter()
    iterations = 0
    while time.perf_counter() - start < duration:
        _stress_burst()
        iterations += 1
        await asyncio.sleep(STRESS_PAUSE_SECONDS)
    return iterations
