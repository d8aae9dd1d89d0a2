"""
Services module for Listing Desk
Contains the dashboard's view state, the record editor and share helpers.
"""

from .table_view import TableView, ViewState, record_matches, sort_records, ASC, DESC
from .record_editor import RecordEditor, Widget
from .share import (
    record_summary,
    share_payload,
    social_post_text,
    media_line,
    drive_thumbnail_url,
    facebook_share_url,
)

__all__ = [
    'TableView',
    'ViewState',
    'record_matches',
    'sort_records',
    'ASC',
    'DESC',
    'RecordEditor',
    'Widget',
    'record_summary',
    'share_payload',
    'social_post_text',
    'media_line',
    'drive_thumbnail_url',
    'facebook_share_url',
]
