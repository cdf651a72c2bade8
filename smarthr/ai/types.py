from typing import Protocol


class AIClient(Protocol):
    async def generate(self, prompt: str, system_instruction: str) -> str: ...

    async def aclose(self) -> None: ...
