"""会话 - 串联 记忆加载 → 提示词拼接 → 模型请求 → 对话记录 → 插入回调"""

import asyncio
from typing import Callable, Optional

from .config import AideConfig
from .memory import ExchangeRecorder, MemoryLoader
from .model_client import ChatClient
from .prompt_builder import build_prompt
from .protocol import ChatResult
from ..utils.logger import logger


InsertCallback = Callable[[str], None]
NoticeCallback = Callable[[str], None]


class AideSession:
    """一次编辑会话

    持有上一次使用的指令（代替全局变量）。配置在每次调用时重新读取，
    调用期间的提示词、开始时间和结果都是局部变量，多次并发调用互不影响。
    文档的并发修改由调用方负责串行化。
    """

    def __init__(
        self,
        settings_factory: Callable[[], AideConfig] = AideConfig,
        client: Optional[ChatClient] = None,
        notify: Optional[NoticeCallback] = None,
    ):
        self.settings_factory = settings_factory
        self.client = client or ChatClient()
        self.notify = notify or logger.info
        self.last_instruction = ""

    def resolve_instruction(self, instruction: Optional[str]) -> str:
        """空指令沿用上一次的指令"""
        if instruction is None or not instruction.strip():
            return self.last_instruction
        self.last_instruction = instruction
        return instruction

    def _prepare_prompt(self, settings: AideConfig, document_text: str, instruction: str,
                        loader: MemoryLoader) -> str:
        memory = loader.load()
        return build_prompt(memory, instruction, document_text, settings.max_chars)

    def preview_prompt(self, document_text: str, instruction: Optional[str] = None) -> str:
        """只拼接提示词，不发送请求"""
        settings = self.settings_factory()
        loader = MemoryLoader(settings.memory_file, settings.memory_enabled, on_warning=self.notify)
        return self._prepare_prompt(settings, document_text, self.resolve_instruction(instruction), loader)

    async def complete(self, document_text: str, instruction: Optional[str],
                       on_insert: InsertCallback) -> ChatResult:
        """执行一次完整的补全流程

        Args:
            document_text: 插入点之前的文档文本
            instruction: 单行指令，为空时沿用上一次的指令
            on_insert: 收到非空回复后调用，由调用方负责修改文档

        Returns:
            本次调用的 ChatResult
        """
        settings = self.settings_factory()
        instruction = self.resolve_instruction(instruction)

        loader = MemoryLoader(settings.memory_file, settings.memory_enabled, on_warning=self.notify)
        prompt = self._prepare_prompt(settings, document_text, instruction, loader)
        if loader.last_load_failed and settings.memory_notice_delay > 0:
            await asyncio.sleep(settings.memory_notice_delay)

        chat_config = settings.chat_config()
        result = await self.client.send_chat(chat_config, prompt)

        if not result.ok:
            self.notify(f"aide: request failed: {result.reason}")
            return result

        try:
            ExchangeRecorder(settings.chat_log_file).log_exchange(
                prompt, result.text, chat_config.model, result.started_at
            )
        except OSError as e:
            self.notify(f"aide: cannot write chat log: {e}")

        if result.is_empty:
            self.notify("aide: empty response")
            return result

        on_insert(result.text)
        return result
