"""记忆与记录模块

核心组件：
- load_memory / MemoryLoader: 记忆文件加载（每次调用都重新读取）
- ExchangeRecorder: 追加式对话记录
"""

from .loader import load_memory, MemoryLoader
from .exchange_recorder import ExchangeRecorder, log_exchange

__all__ = [
    "load_memory",
    "MemoryLoader",
    "ExchangeRecorder",
    "log_exchange",
]
