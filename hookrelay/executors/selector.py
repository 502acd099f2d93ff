"""Pick the execution strategy per request."""

import logging

from hookrelay.executors.base import CommandExecutor
from hookrelay.models import CommandRequest


class SelectingExecutor(CommandExecutor):
    """Delegate to the isolated strategy when requested and available,
    otherwise to the local one."""

    def __init__(
        self,
        local: CommandExecutor,
        isolated: CommandExecutor | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        super().__init__(simulate=False, log=log or logging.getLogger("hookrelay.executors"))
        self.local = local
        self.isolated = isolated

    def select(self, request: CommandRequest) -> CommandExecutor:
        if request.use_isolated_execution:
            if self.isolated is not None:
                return self.isolated
            self._log.info("Isolated execution requested but containers are disabled; running locally")
        return self.local

    def run(self, request: CommandRequest) -> str:
        return self.select(request).run(request)

    def _run(self, request: CommandRequest) -> str:
        return self.select(request)._run(request)
