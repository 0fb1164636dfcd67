"""
API Routes Module

Organizes all API endpoints into logical groups.
"""

from api.routes import memory

__all__ = ['memory']
