"""Common modules for the nearclip session protocol"""
from .framing import read_exact, read_frame, write_frame
from .protocol import (
    Action,
    DataType,
    PathInfo,
    PathType,
    RequestHead,
    ResponseHead,
    StatusCode,
)
from .enumerator import enumerate_paths

__all__ = [
    'read_exact',
    'read_frame',
    'write_frame',
    'Action',
    'DataType',
    'PathInfo',
    'PathType',
    'RequestHead',
    'ResponseHead',
    'StatusCode',
    'enumerate_paths',
]
