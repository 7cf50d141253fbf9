"""
核心模块：配置、日志、错误与版本限额
"""
