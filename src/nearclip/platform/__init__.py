"""
Platform collaborators: clipboard access and notifications
"""
from .base import ClipboardBackend, Notifier
from .memory import LogNotifier, MemoryClipboard

__all__ = [
    'ClipboardBackend',
    'Notifier',
    'LogNotifier',
    'MemoryClipboard',
]
