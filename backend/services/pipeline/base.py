"""Base classes for pipeline stages."""

import logging

from services.completion_client import CompletionConfig, CompletionService

logger = logging.getLogger(__name__)


class BaseStage:
    """Base class for pipeline stages.

    Subclasses set ``stage_name``, the identifier used in logs, retry
    messages and completion configs.
    """

    stage_name: str = ""


class CompletionStage(BaseStage):
    """A stage that talks to the text-completion service."""

    def __init__(self, completion: CompletionService) -> None:
        self.completion = completion

    async def _complete(self, prompt: str, config: CompletionConfig) -> str:
        logger.info("Stage %s: sending prompt (%d chars)", self.stage_name, len(prompt))
        return await self.completion.complete(prompt, config)
