import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aide import __version__
from aide.core import AideConfig, AideSession
from aide.core.memory import ExchangeRecorder
from aide.utils.helpers import format_duration
from aide.utils.logger import logger


# 全局变量
console = Console()
app = typer.Typer(name="aide", help="aide - 把模型回复异步插入到文档中")


def _load_config() -> AideConfig:
    """加载配置，校验失败时退出"""
    try:
        config = AideConfig()
    except ValidationError as e:
        console.print(f"[red]配置无效: {e}[/red]")
        raise typer.Exit(code=2)
    logger.set_console_level(config.log_level)
    return config


def _notice(message: str) -> None:
    console.print(f"[yellow]{escape(message)}[/yellow]")


@app.command()
def complete(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="要编辑的文本文件"),
    instruction: Optional[str] = typer.Option(None, "--instruction", "-i", help="单行指令"),
    at: Optional[int] = typer.Option(None, "--at", help="插入位置（字符偏移，默认文件末尾）"),
    dry_run: bool = typer.Option(False, "--dry-run", help="只打印提示词，不发送请求"),
):
    """按指令生成文本并插入到文件中"""
    _load_config()

    text = file.read_text(encoding="utf-8")
    offset = len(text) if at is None else at
    if not 0 <= offset <= len(text):
        console.print(f"[red]插入位置超出范围: {offset} (文件长度 {len(text)})[/red]")
        raise typer.Exit(code=2)

    if instruction is None:
        instruction = typer.prompt("Instruction", default="", show_default=False)

    session = AideSession(settings_factory=AideConfig, notify=_notice)
    document_text = text[:offset]

    if dry_run:
        prompt = session.preview_prompt(document_text, instruction)
        console.print(Panel(Text(prompt), title="📝 Prompt", border_style="blue"))
        console.print(f"[dim]{len(prompt)} 字符[/dim]")
        return

    inserted: List[str] = []

    def insert(reply: str) -> None:
        file.write_text(text[:offset] + reply + text[offset:], encoding="utf-8")
        inserted.append(reply)

    with console.status("[blue]等待模型回复...[/blue]"):
        result = asyncio.run(session.complete(document_text, instruction, insert))

    if not result.ok:
        raise typer.Exit(code=1)

    if inserted:
        console.print(
            f"[green]✅ 已插入 {len(inserted[0])} 字符到 {file}:{offset}"
            f" ({format_duration(result.elapsed)})[/green]"
        )


@app.command()
def config():
    """显示当前生效的配置"""
    current = _load_config()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("配置项", style="cyan")
    table.add_column("值", style="green")
    for key, value in current.to_dict().items():
        table.add_row(key, "[dim]禁用[/dim]" if value is None else str(value))

    console.print(table)
    console.print(f"[dim]输入字符预算: {current.max_chars}[/dim]")


@app.command()
def log(
    limit: int = typer.Option(5, "--limit", "-n", min=1, help="显示最近N条记录"),
):
    """显示对话记录文件中的最近几条记录"""
    current = _load_config()

    if current.chat_log_file is None:
        console.print("[yellow]对话记录已禁用[/yellow]")
        return

    try:
        blocks = ExchangeRecorder.read_blocks(current.chat_log_file)
    except FileNotFoundError:
        console.print(f"[yellow]未找到对话记录: {current.chat_log_file}[/yellow]")
        return

    if not blocks:
        console.print("[yellow]对话记录为空[/yellow]")
        return

    for block in blocks[-limit:]:
        header, _, body = block.partition("\n")
        console.print(Panel(Text(body), title=header.lstrip("* "), border_style="cyan"))

    console.print(f"\n[dim]总计: {len(blocks)} 条记录[/dim]")
    console.print(f"[dim]记录文件: {current.chat_log_file}[/dim]")


@app.command()
def version():
    """显示版本信息"""
    console.print(f"aide v{__version__}")


def main():
    """主入口函数"""
    app()


if __name__ == "__main__":
    main()
