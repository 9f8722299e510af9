import asyncio


class FakeClock:
    """Manually advanced monotonic clock with a matching sleep coroutine"""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)
