# /cowfee/sweep/prompt.py
import asyncio
from typing import Protocol

CONFIRM_DRIP_MESSAGE = "\nDo you want to send this transaction? (yes/no): "


class ConfirmationPrompt(Protocol):
    async def confirm(self, message: str) -> bool: ...


class StdinConfirmationPrompt:
    """Asks on the terminal. Only "yes" or "y" (any case) confirm."""

    async def confirm(self, message: str) -> bool:
        answer = await asyncio.to_thread(input, message)
        return answer.strip().lower() in ("yes", "y")


class AutoConfirmPrompt:
    async def confirm(self, message: str) -> bool:
        return True
