"""aide 通用工具"""
