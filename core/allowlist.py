"""
Allow-list gate for free-text commands. A command passes when it starts with one of the configured
prefixes (literal, case-sensitive); an empty list passes nothing.

Enforcement is off by default: the result is computed and logged, and the command runs anyway.
"""

from typing import Iterable, List

from loguru import logger


def is_command_allowed(command: str, allowed_prefixes: Iterable[str]) -> bool:
    if not isinstance(command, str):
        return False
    return any(prefix and command.startswith(prefix) for prefix in allowed_prefixes or ())


class CommandGate:
    def __init__(self, allowed_prefixes: Iterable[str] = (), enforce: bool = False):
        self.allowed_prefixes: List[str] = list(allowed_prefixes or ())
        self.enforce = enforce

    def check(self, command: str) -> bool:
        """Return True when the command may run: always when not enforcing, else when allowed."""
        allowed = is_command_allowed(command, self.allowed_prefixes)
        if allowed:
            logger.debug("Command allowed by allow-list: {}", command)
            return True
        if self.enforce:
            logger.warning("Command blocked by allow-list: {}", command)
            return False
        logger.debug("Command not in allow-list (not enforced): {}", command)
        return True
