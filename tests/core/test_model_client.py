#!/usr/bin/env python3
"""ChatClient 单元测试"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import openai

from aide.core.config import ChatConfig
from aide.core.model_client import ChatClient, extract_content, build_messages, MALFORMED_RESPONSE
from aide.core.protocol import Success, Failure, FailureKind


def make_config(key: str = "test-key", **overrides) -> ChatConfig:
    params = dict(
        model="gpt-4o-mini",
        max_output_tokens=480,
        temperature=1.1,
        api_key_provider=lambda: key,
        api_base="https://api.example.com/v1",
    )
    params.update(overrides)
    return ChatConfig(**params)


class ConnectionLost(openai.APIError):
    """不依赖底层 HTTP 请求对象的 SDK 错误"""

    def __init__(self):
        Exception.__init__(self, "Connection error.")


def make_openai_client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    return client


class TestExtractContent(unittest.TestCase):
    """测试响应内容提取"""

    def test_extract_from_mapping(self):
        response = {"choices": [{"message": {"content": "hello"}}]}
        self.assertEqual(extract_content(response), "hello")

    def test_extract_from_sdk_object(self):
        response = Mock()
        response.choices = [Mock()]
        response.choices[0].message.content = "你好"
        self.assertEqual(extract_content(response), "你好")

    def test_missing_choices(self):
        self.assertIsNone(extract_content({}))
        self.assertIsNone(extract_content({"choices": []}))
        self.assertIsNone(extract_content({"choices": [{"message": {}}]}))

    def test_null_content(self):
        self.assertIsNone(extract_content({"choices": [{"message": {"content": None}}]}))

    def test_object_without_choices(self):
        self.assertIsNone(extract_content(object()))

    def test_build_messages(self):
        self.assertEqual(build_messages("hi"), [{"role": "user", "content": "hi"}])


class TestChatClientAsync(unittest.IsolatedAsyncioTestCase):
    """测试 ChatClient 异步方法"""

    def setUp(self):
        self.client = ChatClient()

    async def test_success(self):
        """模拟返回 choices 时得到 Success"""
        create = AsyncMock(return_value={"choices": [{"message": {"content": "hello"}}]})
        openai_client = make_openai_client(create)

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client) as factory:
            result = await self.client.send_chat(make_config(), "prompt text")

        self.assertIsInstance(result, Success)
        self.assertTrue(result.ok)
        self.assertEqual(result.text, "hello")
        self.assertGreaterEqual(result.elapsed, 0.0)

        factory.assert_called_once_with(
            api_key="test-key", base_url="https://api.example.com/v1", max_retries=0
        )
        create.assert_awaited_once_with(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "prompt text"}],
            max_tokens=480,
            temperature=1.1,
        )
        openai_client.close.assert_awaited_once()

    async def test_sdk_response_object(self):
        mock_response = Mock()
        mock_response.choices = [Mock()]
        mock_response.choices[0].message = Mock()
        mock_response.choices[0].message.content = "测试响应"

        openai_client = make_openai_client(AsyncMock(return_value=mock_response))
        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "问题")

        self.assertEqual(result, Success("测试响应", result.started_at, result.elapsed))

    async def test_malformed_response(self):
        """没有 choices 的响应返回 Failure 而不是抛异常"""
        openai_client = make_openai_client(AsyncMock(return_value={}))

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "prompt")

        self.assertIsInstance(result, Failure)
        self.assertEqual(result.reason, MALFORMED_RESPONSE)
        self.assertEqual(result.kind, FailureKind.MALFORMED_RESPONSE)

    async def test_empty_content_is_success(self):
        openai_client = make_openai_client(
            AsyncMock(return_value={"choices": [{"message": {"content": "  \n"}}]})
        )

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "prompt")

        self.assertTrue(result.ok)
        self.assertTrue(result.is_empty)

    async def test_transport_error(self):
        """普通异常映射为 TRANSPORT 失败"""
        openai_client = make_openai_client(AsyncMock(side_effect=Exception("API错误")))

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "prompt")

        self.assertIsInstance(result, Failure)
        self.assertEqual(result.kind, FailureKind.TRANSPORT)
        self.assertIn("API错误", result.reason)
        openai_client.close.assert_awaited_once()

    async def test_api_connection_error(self):
        error = ConnectionLost()
        openai_client = make_openai_client(AsyncMock(side_effect=error))

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "prompt")

        self.assertEqual(result.kind, FailureKind.TRANSPORT)
        self.assertEqual(result.reason, "Connection error.")
        openai_client.close.assert_awaited_once()

    async def test_close_error_keeps_reply(self):
        """关闭客户端失败不影响已经拿到的回复"""
        openai_client = make_openai_client(
            AsyncMock(return_value={"choices": [{"message": {"content": "hello"}}]})
        )
        openai_client.close = AsyncMock(side_effect=RuntimeError("close failed"))

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "prompt")

        self.assertTrue(result.ok)
        self.assertEqual(result.text, "hello")
        openai_client.close.assert_awaited_once()

    async def test_close_error_keeps_transport_failure(self):
        openai_client = make_openai_client(AsyncMock(side_effect=Exception("down")))
        openai_client.close = AsyncMock(side_effect=RuntimeError("close failed"))

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            result = await self.client.send_chat(make_config(), "prompt")

        self.assertEqual(result.kind, FailureKind.TRANSPORT)
        self.assertEqual(result.reason, "down")

    async def test_single_attempt(self):
        """失败后不重试"""
        create = AsyncMock(side_effect=Exception("boom"))
        openai_client = make_openai_client(create)

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            await self.client.send_chat(make_config(), "prompt")

        self.assertEqual(create.await_count, 1)

    async def test_missing_api_key(self):
        """空 key 立即失败，不创建客户端"""
        with patch("aide.core.model_client.AsyncOpenAI") as factory:
            result = await self.client.send_chat(make_config(key=""), "prompt")

        self.assertEqual(result.kind, FailureKind.MISSING_API_KEY)
        factory.assert_not_called()

    async def test_api_key_provider_raises(self):
        def provider():
            raise RuntimeError("keychain locked")

        with patch("aide.core.model_client.AsyncOpenAI") as factory:
            result = await self.client.send_chat(make_config(api_key_provider=provider), "prompt")

        self.assertEqual(result.kind, FailureKind.MISSING_API_KEY)
        self.assertIn("keychain locked", result.reason)
        factory.assert_not_called()

    async def test_api_key_read_on_every_call(self):
        """每次调用都重新读取 key"""
        keys = iter(["key-1", "key-2"])
        config = make_config(api_key_provider=lambda: next(keys))
        openai_client = make_openai_client(
            AsyncMock(return_value={"choices": [{"message": {"content": "ok"}}]})
        )

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client) as factory:
            await self.client.send_chat(config, "a")
            await self.client.send_chat(config, "b")

        used_keys = [call.kwargs["api_key"] for call in factory.call_args_list]
        self.assertEqual(used_keys, ["key-1", "key-2"])

    async def test_callback_invoked_once(self):
        openai_client = make_openai_client(
            AsyncMock(return_value={"choices": [{"message": {"content": "hello"}}]})
        )
        received = []

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            task = self.client.send_chat_callback(make_config(), "prompt", received.append)
            result = await task

        self.assertEqual(len(received), 1)
        self.assertIs(received[0], result)
        self.assertEqual(result.text, "hello")

    async def test_callback_receives_failure(self):
        openai_client = make_openai_client(AsyncMock(side_effect=Exception("down")))
        received = []

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            await self.client.send_chat_callback(make_config(), "prompt", received.append)

        self.assertEqual(len(received), 1)
        self.assertFalse(received[0].ok)

    async def test_concurrent_calls_do_not_cross(self):
        """交错完成的并发请求各自拿到自己的结果"""
        release = {"first": asyncio.Event(), "second": asyncio.Event()}

        async def fake_create(**kwargs):
            prompt = kwargs["messages"][0]["content"]
            await release[prompt].wait()
            return {"choices": [{"message": {"content": f"reply to {prompt}"}}]}

        openai_client = make_openai_client(AsyncMock(side_effect=fake_create))
        first_results, second_results = [], []

        with patch("aide.core.model_client.AsyncOpenAI", return_value=openai_client):
            first = self.client.send_chat_callback(make_config(), "first", first_results.append)
            second = self.client.send_chat_callback(make_config(), "second", second_results.append)
            await asyncio.sleep(0)

            # 后发的请求先完成
            release["second"].set()
            await second
            self.assertEqual(first_results, [])

            release["first"].set()
            await first

        self.assertEqual([r.text for r in first_results], ["reply to first"])
        self.assertEqual([r.text for r in second_results], ["reply to second"])


if __name__ == '__main__':
    unittest.main()
