"""aide 命令行入口"""
