# -*- coding: utf-8 -*-
"""
UI模块
基于 rich 的终端仪表盘
"""

from .console import ConsoleDashboard

__all__ = ['ConsoleDashboard']
