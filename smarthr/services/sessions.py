from __future__ import annotations

import contextlib
from typing import Iterator


class SessionBusyError(RuntimeError):
    def __init__(self, message: str = "A reply is still being generated for this session.", status_code: int = 409):
        super().__init__(message)
        self.status_code = status_code


class SessionGuard:
    """In-flight flag plus a generation token for one single-owner session.

    ``reset`` bumps the generation so replies started before it are dropped.
    """

    def __init__(self) -> None:
        self.generation = 0
        self.in_flight = False

    @contextlib.contextmanager
    def turn(self) -> Iterator[int]:
        if self.in_flight:
            raise SessionBusyError()
        self.in_flight = True
        generation = self.generation
        try:
            yield generation
        finally:
            if self.generation == generation:
                self.in_flight = False

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def reset(self) -> None:
        self.generation += 1
        self.in_flight = False
