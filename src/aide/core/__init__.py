"""aide 核心模块"""

from .protocol import (
    PromptRequest,
    Success,
    Failure,
    FailureKind,
    ChatResult,
    ExchangeRecord,
)
from .config import AideConfig, ChatConfig, CHARS_PER_TOKEN
from .prompt_builder import build_prompt, fit_request, document_budget, max_chars_for
from .model_client import ChatClient
from .session import AideSession

__all__ = [
    "AideSession",
    "ChatClient",
    "AideConfig",
    "ChatConfig",
    "CHARS_PER_TOKEN",
    "PromptRequest",
    "Success",
    "Failure",
    "FailureKind",
    "ChatResult",
    "ExchangeRecord",
    "build_prompt",
    "fit_request",
    "document_budget",
    "max_chars_for",
]
