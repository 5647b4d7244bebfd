"""aide 协议定义 - 单次调用内流转的值对象"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union


PROMPT_PREFIX = "Instructions: "
CONTEXT_HEADER = "\n\nContext:\n\n"
PROMPT_HEADING = "** Prompt"
RESPONSE_HEADING = "** Response"
LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class FailureKind(str, Enum):
    """失败类型"""
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"
    MISSING_API_KEY = "missing_api_key"


@dataclass(frozen=True)
class PromptRequest:
    """一次请求的三段输入

    document_tail 已经按字符预算从开头截断过，memory_text 和 instruction 从不截断。
    """
    memory_text: str
    instruction: str
    document_tail: str

    def render(self) -> str:
        return (
            self.memory_text
            + PROMPT_PREFIX
            + self.instruction
            + CONTEXT_HEADER
            + self.document_tail
        )


@dataclass(frozen=True)
class Success:
    """请求成功"""
    text: str
    started_at: float
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_empty(self) -> bool:
        """解析成功但内容为空，调用方不应插入空白文本"""
        return not self.text.strip()


@dataclass(frozen=True)
class Failure:
    """请求失败（不会以异常形式跨越异步边界）"""
    reason: str
    kind: FailureKind
    started_at: float
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return False


ChatResult = Union[Success, Failure]


@dataclass(frozen=True)
class ExchangeRecord:
    """对话记录文件中的一条记录"""
    timestamp: datetime
    elapsed_seconds: float
    model: str
    prompt: str
    response: str

    def to_block(self) -> str:
        """格式化为以 `* ` 开头的大纲块，便于按大纲折叠浏览"""
        header = (
            f"* {self.timestamp.strftime(LOG_TIME_FORMAT)}"
            f" | {self.model}"
            f" | {self.elapsed_seconds:.2f}s"
        )
        return (
            f"{header}\n"
            f"{PROMPT_HEADING}\n{self.prompt}\n"
            f"{RESPONSE_HEADING}\n{self.response}\n\n"
        )
