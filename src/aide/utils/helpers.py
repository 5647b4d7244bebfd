"""工具函数"""

from datetime import timedelta


def format_duration(seconds: float) -> str:
    """格式化持续时间"""
    if seconds < 1:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        td = timedelta(seconds=seconds)
        return str(td)


def tail_text(text: str, max_length: int) -> str:
    """保留文本末尾的 max_length 个字符（丢弃最旧的部分）"""
    if max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text
    return text[-max_length:]


def truncate_text(text: str, max_length: int = 1000, suffix: str = "...") -> str:
    """截断文本（用于日志预览）"""
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix
