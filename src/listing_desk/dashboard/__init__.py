"""
Dashboard module - Flask web UI and JSON API
"""
from .app import create_app
from .handoff import HandoffStore

__all__ = ['create_app', 'HandoffStore']
