import time
from dataclasses import dataclass, field


@dataclass
class Deadline:
    '''
    Wall-clock budget of one execution. Passed down to every spawn and await
    so expiry is decided by the same object everywhere.
    '''
    timeout_ms: int
    started: float = field(default_factory=time.monotonic)

    @property
    def expires_at(self) -> float:
        return self.started + self.timeout_ms / 1000

    def remaining(self) -> float:
        '''Seconds left, never negative.'''
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000

    def budget(self, cap_ms: int | None = None) -> 'Deadline':
        '''
        Child deadline starting now, bounded by what is left of this one and
        by ``cap_ms`` when given.
        '''
        left_ms = int(self.remaining() * 1000)
        if cap_ms is not None:
            left_ms = min(left_ms, cap_ms)
        return Deadline(left_ms)
