"""Control topic command handling.

Each recognised command maps to one action. Actions run on a worker through
``submit`` so the message-bus delivery thread is never blocked by them.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Union

logger = logging.getLogger("regbridge.commands")

QUIT = "quit"

Action = Callable[[], None]


class CommandHandler:
    def __init__(self, submit: Callable[[Action], None]) -> None:
        self._submit = submit
        self._actions: Dict[str, Action] = {}

    def register(self, command: str, action: Action) -> None:
        self._actions[command.strip().lower()] = action

    @property
    def commands(self) -> list:
        return sorted(self._actions)

    def on_message(self, topic: str, payload: Union[str, bytes]) -> None:
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Ignoring non UTF-8 command on %s", topic)
                return
        command = payload.strip().lower()
        action = self._actions.get(command)
        if action is None:
            logger.debug("Ignoring unknown command '%s' on %s", command, topic)
            return
        logger.info("Received command '%s'", command)
        try:
            self._submit(action)
        except RuntimeError as e:
            # executor already shut down
            logger.debug("Command '%s' not submitted: %s", command, e)
