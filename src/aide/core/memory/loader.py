"""记忆文件加载器"""

from pathlib import Path
from typing import Callable, Optional, Union

from ...utils.logger import logger


WarningCallback = Callable[[str], None]


def load_memory(
    path: Union[str, Path],
    enabled: bool,
    on_warning: Optional[WarningCallback] = None,
) -> str:
    """读取记忆文件全部内容

    每次调用都重新读取，不做缓存。

    Args:
        path: 记忆文件路径（支持 ~）
        enabled: 为 False 时直接返回空字符串，不访问文件系统
        on_warning: 文件不可读时的提示回调（非致命）

    Returns:
        文件内容原文；禁用或不可读时为空字符串
    """
    if not enabled:
        return ""

    memory_path = Path(path).expanduser()
    try:
        return memory_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        message = f"无法读取记忆文件 {memory_path}: {e}"
        logger.warning(message)
        if on_warning is not None:
            on_warning(message)
        return ""


class MemoryLoader:
    """持有路径和开关的记忆加载器

    负责：
    - 按配置决定是否读取记忆文件
    - 记录最近一次读取是否失败，便于调用方决定是否停留提示
    """

    def __init__(self, path: Union[str, Path], enabled: bool = True,
                 on_warning: Optional[WarningCallback] = None):
        self.path = Path(path)
        self.enabled = enabled
        self.on_warning = on_warning
        self.last_load_failed = False

    def load(self) -> str:
        self.last_load_failed = False

        def _warn(message: str) -> None:
            self.last_load_failed = True
            if self.on_warning is not None:
                self.on_warning(message)

        return load_memory(self.path, self.enabled, on_warning=_warn)
