"""
Services package for the FitLeague scoring engine.
"""

from .base import BaseService
from .event_bus import LeagueEventBus

__all__ = ['BaseService', 'LeagueEventBus']
