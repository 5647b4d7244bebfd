"""aide 配置管理 - 基于 pydantic-settings

配置优先级（从高到低）：
1. 代码传入参数
2. .env 文件
3. 系统环境变量
4. 默认值

每次调用都会重新构造配置，因此运行时修改环境变量或 .env 会在下一次调用生效。
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource


# 近似换算：1 token ≈ 4 个字符
CHARS_PER_TOKEN = 4

_DISABLED_VALUES = {"", "none", "off", "false", "0"}


@dataclass(frozen=True)
class ChatConfig:
    """单次调用使用的不可变模型参数"""
    model: str
    max_output_tokens: int
    temperature: float
    api_key_provider: Callable[[], str]
    api_base: Optional[str] = None


class AideConfig(BaseSettings):
    """配置类 - 支持 .env 文件和环境变量"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AIDE_",
        case_sensitive=False,
        extra="ignore",
    )

    # 模型配置
    model: str = Field(default="gpt-4o-mini", min_length=1, description="模型名称")
    api_key: Optional[str] = Field(default=None, description="API密钥")
    api_base: str = Field(default="https://api.openai.com/v1", description="API基础URL")

    # 预算与采样参数
    max_input_tokens: int = Field(default=4000, ge=1, description="最大输入token数")
    # 超过 480 时回复质量明显下降
    max_output_tokens: int = Field(default=480, ge=1, le=4096, description="最大输出token数")
    temperature: float = Field(default=1.1, ge=0.0, le=2.0, description="采样温度")

    # 记忆文件
    memory_file: Path = Field(default=Path("~/memory.txt"), description="记忆文件路径")
    memory_enabled: bool = Field(default=True, description="是否加载记忆文件")
    memory_notice_delay: float = Field(default=0.0, ge=0.0, le=10.0, description="记忆文件不可读时的提示停留秒数")

    # 对话记录文件，空字符串或 none 表示禁用
    chat_log_file: Optional[Path] = Field(default=Path("~/aide-log.txt"), description="对话记录文件路径")

    # 日志
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """自定义配置源优先级：代码传入 > .env文件 > 环境变量 > 默认值"""
        return init_settings, dotenv_settings, env_settings, file_secret_settings

    @field_validator("chat_log_file", mode="before")
    @classmethod
    def validate_chat_log_file(cls, v: Any) -> Optional[Any]:
        """识别禁用记录的哨兵值"""
        if v is None:
            return None
        if isinstance(v, str) and v.strip().lower() in _DISABLED_VALUES:
            return None
        return v

    @field_validator("memory_file", "chat_log_file", mode="after")
    @classmethod
    def expand_home(cls, v: Optional[Path]) -> Optional[Path]:
        return v.expanduser() if v is not None else None

    @property
    def max_chars(self) -> int:
        """输入字符预算"""
        return self.max_input_tokens * CHARS_PER_TOKEN

    def resolve_api_key(self) -> str:
        """读取 API Key，支持 OPENAI_API_KEY 作为回退"""
        return self.api_key or os.getenv("OPENAI_API_KEY") or ""

    def chat_config(self) -> ChatConfig:
        """构造本次调用的 ChatConfig（API Key 在真正发请求时才读取）"""
        return ChatConfig(
            model=self.model,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
            api_key_provider=self.resolve_api_key,
            api_base=self.api_base,
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（隐藏敏感信息）"""
        data = self.model_dump()
        data["memory_file"] = str(data["memory_file"])
        data["chat_log_file"] = str(data["chat_log_file"]) if data["chat_log_file"] else None
        key = self.resolve_api_key()
        data["api_key"] = ("***" + key[-4:] if len(key) > 4 else "***") if key else None
        return data
