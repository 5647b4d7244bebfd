"""按字符预算拼接提示词

提示词结构：记忆 + "Instructions: " + 指令 + "\\n\\nContext:\\n\\n" + 文档末尾窗口。
超出预算时只截断文档窗口，并且从开头截断，保留紧挨插入点之前的文本。
"""

from .config import CHARS_PER_TOKEN
from .protocol import PromptRequest, PROMPT_PREFIX, CONTEXT_HEADER
from ..utils.helpers import tail_text
from ..utils.logger import logger


def max_chars_for(max_input_tokens: int) -> int:
    """token 预算换算为字符预算"""
    return max_input_tokens * CHARS_PER_TOKEN


def document_budget(memory: str, instruction: str, max_chars: int) -> int:
    """文档窗口可用的字符数，预留部分已超出预算时为 0"""
    reserved = len(memory) + len(PROMPT_PREFIX + instruction + CONTEXT_HEADER)
    return max(0, max_chars - reserved)


def fit_request(memory: str, instruction: str, document_text: str, max_chars: int) -> PromptRequest:
    """构造满足预算的 PromptRequest（不修改任何输入）"""
    budget = document_budget(memory, instruction, max_chars)
    window = tail_text(document_text, budget)

    if len(window) < len(document_text):
        logger.debug(
            f"文档窗口被截断: {len(document_text)} -> {len(window)} 字符 (预算 {max_chars})"
        )

    return PromptRequest(memory_text=memory, instruction=instruction, document_tail=window)


def build_prompt(memory: str, instruction: str, document_text: str, max_chars: int) -> str:
    """拼接最终提示词

    Args:
        memory: 记忆文本，原样前置
        instruction: 单行用户指令
        document_text: 插入点之前的文档文本
        max_chars: 字符预算

    Returns:
        预留部分不超预算时，长度不超过 max_chars 的提示词；
        否则文档窗口为空字符串（不抛异常）。
    """
    return fit_request(memory, instruction, document_text, max_chars).render()
