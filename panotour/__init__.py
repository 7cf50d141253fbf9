"""
Panotour - 360° 全景虚拟漫游核心
"""

__version__ = "0.1.0"
