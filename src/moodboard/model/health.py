import asyncio


class HealthGauge:
    """
    Makeshift health check used by the readiness check.

    Every unhandled request exception bumps the gauge up by one and a background task decays
    it by one each tick. A burst of failures pushes the value past the threshold and the
    readiness check starts returning 503 until the burst has decayed away.
    """

    def __init__(self, value: int = 0, health_threshold: int = 100) -> None:
        self._value = value
        self._health_threshold = health_threshold
        self._lock = asyncio.Lock()

    @property
    def value(self) -> int:
        return self._value

    async def womp(self, d: int = 1) -> int:
        async with self._lock:
            self._value += int(d)
            return self._value

    async def tick(self) -> None:
        async with self._lock:
            if self._value > 0:
                self._value -= 1

    async def is_healthy(self) -> bool:
        async with self._lock:
            return self._value <= self._health_threshold
