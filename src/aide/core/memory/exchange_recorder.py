"""对话记录器 - 以追加方式写入每次成功的提示词/回复"""

import re
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from ..protocol import ExchangeRecord, PROMPT_HEADING
from ...utils.logger import logger


# 只有带时间戳的 `* ` 行才是块头，正文里的列表项不算
BLOCK_HEADER = re.compile(r"^\* \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \| ")


class ExchangeRecorder:
    """大纲格式的对话记录器

    负责：
    - 把每次成功的交互追加为一个以 `* ` 开头的块
    - 路径为 None 或空字符串时不做任何事
    - 从不覆盖已有内容

    失败的请求不写入这里，只作为临时提示展示给用户。
    """

    def __init__(self, log_path: Optional[Union[str, Path]]):
        """
        Args:
            log_path: 记录文件路径；None 或空字符串表示禁用
        """
        self.log_path = Path(log_path).expanduser() if log_path else None

    @property
    def enabled(self) -> bool:
        return self.log_path is not None

    def log_exchange(self, prompt: str, response: str, model: str, start_time: float) -> Optional[ExchangeRecord]:
        """追加一条记录

        Args:
            prompt: 完整提示词
            response: 完整回复
            model: 模型名称
            start_time: 发出请求前记录的 time.time()

        Returns:
            写入的记录；禁用时为 None
        """
        if not self.enabled:
            return None

        record = ExchangeRecord(
            timestamp=datetime.now(),
            elapsed_seconds=time.time() - start_time,
            model=model,
            prompt=prompt,
            response=response,
        )
        self._append_block(record.to_block())
        logger.debug(f"写入对话记录: {self.log_path} ({record.elapsed_seconds:.2f}s)")
        return record

    def _append_block(self, block: str) -> None:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(block)
        except OSError as e:
            logger.error(f"写入对话记录失败: {e}")
            raise

    @staticmethod
    def _is_block_start(lines: List[str], i: int) -> bool:
        """块头：带时间戳的 `* ` 行，紧跟 `** Prompt`，且位于文件开头或空行之后"""
        if not BLOCK_HEADER.match(lines[i]):
            return False
        if i + 1 >= len(lines) or lines[i + 1].rstrip("\n") != PROMPT_HEADING:
            return False
        return i == 0 or not lines[i - 1].strip()

    @classmethod
    def read_blocks(cls, log_path: Union[str, Path]) -> List[str]:
        """把已有记录文件拆分为块

        Raises:
            FileNotFoundError: 文件不存在
        """
        log_path = Path(log_path).expanduser()
        if not log_path.exists():
            raise FileNotFoundError(f"对话记录文件不存在: {log_path}")

        with open(log_path, "r", encoding="utf-8") as f:
            lines = f.readlines()

        blocks: List[str] = []
        current: List[str] = []
        for i, line in enumerate(lines):
            if current and cls._is_block_start(lines, i):
                blocks.append("".join(current).rstrip("\n"))
                current = []
            current.append(line)
        if current:
            blocks.append("".join(current).rstrip("\n"))

        return blocks


def log_exchange(log_path: Optional[Union[str, Path]], prompt: str, response: str,
                 model: str, start_time: float) -> Optional[ExchangeRecord]:
    """函数形式的记录入口"""
    return ExchangeRecorder(log_path).log_exchange(prompt, response, model, start_time)
