"""TriageDesk integration clients.

Every client implements ``BaseIntegration``; text generation clients also
implement ``TextGenerationIntegration.generate``.
"""

from triagedesk.integrations.ai_client import TextGenerationClient
from triagedesk.integrations.base import BaseIntegration, TextGenerationIntegration

__all__ = [
    "BaseIntegration",
    "TextGenerationClient",
    "TextGenerationIntegration",
]
