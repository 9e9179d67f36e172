"""
Kitchen routers - /api/kitchen/*
Handles kitchen and bar task boards.
"""

from .tasks import router

__all__ = ["router"]
