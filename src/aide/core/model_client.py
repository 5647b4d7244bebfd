"""AI模型客户端 - 每次提示词发出一次非阻塞请求"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from .config import ChatConfig
from .protocol import ChatResult, Failure, FailureKind, Success
from ..utils.helpers import truncate_text
from ..utils.logger import logger


MALFORMED_RESPONSE = "malformed response"

ResultCallback = Callable[[ChatResult], None]


def extract_content(response: Any) -> Optional[str]:
    """取出 choices[0].message.content，路径缺失时返回 None

    同时兼容 SDK 返回的对象和普通字典。
    """
    try:
        if isinstance(response, Mapping):
            content = response["choices"][0]["message"]["content"]
        else:
            choices = getattr(response, "choices", None)
            if not choices:
                return None
            content = getattr(choices[0].message, "content", None)
    except (KeyError, IndexError, TypeError, AttributeError):
        return None

    return content if isinstance(content, str) else None


def build_messages(prompt: str) -> List[Dict[str, str]]:
    """单轮用户消息"""
    return [{"role": "user", "content": prompt}]


class ChatClient:
    """聊天补全客户端

    设计：
    - 每次调用都从 api_key_provider 重新读取 key，并用它新建 AsyncOpenAI 客户端
    - 只尝试一次（max_retries=0），不做退避重试
    - 任何失败都以 Failure 返回，不向调用方抛异常
    - 调用之间没有共享的可变状态，并发调用互不干扰
    """

    def _create_client(self, api_key: str, api_base: Optional[str]) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=api_base, max_retries=0)

    async def _close_client(self, client: AsyncOpenAI) -> None:
        """关闭失败只记录日志，不影响已经拿到的结果"""
        try:
            await client.close()
        except Exception as e:
            logger.warning(f"关闭模型客户端失败: {type(e).__name__}: {e}")

    async def send_chat(self, config: ChatConfig, prompt: str) -> ChatResult:
        """发送一次聊天补全请求

        Returns:
            Success(text) 或 Failure(reason)，恰好一个
        """
        started_at = time.time()

        try:
            api_key = config.api_key_provider()
        except Exception as e:
            logger.warning(f"读取 API Key 失败: {e}")
            return Failure(f"cannot read API key: {e}", FailureKind.MISSING_API_KEY, started_at,
                           time.time() - started_at)

        if not api_key:
            logger.warning("未配置 API Key，跳过请求")
            return Failure("API key is not set", FailureKind.MISSING_API_KEY, started_at,
                           time.time() - started_at)

        logger.debug(f"发送请求到模型 {config.model}: {len(prompt)} 字符")

        # 计时从真正发出请求前开始
        started_at = time.time()
        client = None
        try:
            client = self._create_client(api_key, config.api_base)
            response = await client.chat.completions.create(
                model=config.model,
                messages=build_messages(prompt),
                max_tokens=config.max_output_tokens,
                temperature=config.temperature,
            )
        except openai.APIError as e:
            elapsed = time.time() - started_at
            logger.warning(f"模型请求失败 ({elapsed:.2f}s): {e}")
            return Failure(str(e) or type(e).__name__, FailureKind.TRANSPORT, started_at, elapsed)
        except Exception as e:
            elapsed = time.time() - started_at
            logger.error(f"模型请求异常 ({elapsed:.2f}s): {type(e).__name__}: {e}")
            return Failure(str(e) or type(e).__name__, FailureKind.TRANSPORT, started_at, elapsed)
        finally:
            if client is not None:
                await self._close_client(client)

        elapsed = time.time() - started_at
        content = extract_content(response)
        if content is None:
            logger.warning(f"模型响应格式异常: {truncate_text(repr(response), 500)}")
            return Failure(MALFORMED_RESPONSE, FailureKind.MALFORMED_RESPONSE, started_at, elapsed)

        logger.debug(f"模型响应 ({elapsed:.2f}s): {len(content)} 字符")
        return Success(content, started_at, elapsed)

    def send_chat_callback(self, config: ChatConfig, prompt: str,
                           on_complete: ResultCallback) -> "asyncio.Task[ChatResult]":
        """在当前事件循环上调度请求，结果恰好回调一次

        必须在运行中的事件循环内调用。
        """
        async def _run() -> ChatResult:
            result = await self.send_chat(config, prompt)
            on_complete(result)
            return result

        return asyncio.get_running_loop().create_task(_run())
