"""aide - 在编辑器中按预算拼接提示词并异步插入模型回复"""

__version__ = "0.1.0"
