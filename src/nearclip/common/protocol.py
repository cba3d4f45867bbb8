"""
Wire data model for the nearclip session protocol

Every request starts with a JSON head frame (see framing.py). Keys use the
camelCase names peers already speak; the dataclasses below translate them
to Python attributes.
"""
import json
from dataclasses import dataclass, field
from typing import List, Optional

from nearclip.common.errors import InvalidDataError


class Action:
    """Request actions"""
    PING = "ping"
    PASTE_TEXT = "pasteText"
    PASTE_FILE = "pasteFile"
    COPY = "copy"
    DOWNLOAD = "download"
    MATCH = "match"


class DataType:
    """Body types a response can carry"""
    TEXT = "text"
    CLIP_IMAGE = "clip-image"
    FILES = "files"
    BINARY = "binary"


class PathType:
    """Kinds of entries in a files manifest"""
    DIR = "dir"
    FILE = "file"


class StatusCode:
    """Response status codes"""
    OK = 200
    CLIENT_ERROR = 400
    UNAUTHORIZED = 401


def _as_int(value, name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDataError(f"field {name} must be an integer")
    return value


def _as_str(value, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidDataError(f"field {name} must be a string")
    return value


@dataclass
class RequestHead:
    """Head frame sent by the peer for every request"""
    action: str = ""
    device_name: str = ""
    time_ip: str = ""
    file_id: int = 0
    file_size: int = 0
    path: str = ""
    dirs: List[str] = field(default_factory=list)
    upload_type: str = ""
    start: int = 0
    end: int = 0
    data_len: int = 0
    op_id: int = 0
    files_count_in_this_op: int = 0

    def to_dict(self) -> dict:
        return {
            'action': self.action,
            'deviceName': self.device_name,
            'timeIp': self.time_ip,
            'fileID': self.file_id,
            'fileSize': self.file_size,
            'path': self.path,
            'dirs': list(self.dirs),
            'uploadType': self.upload_type,
            'start': self.start,
            'end': self.end,
            'dataLen': self.data_len,
            'opID': self.op_id,
            'filesCountInThisOp': self.files_count_in_this_op,
        }

    @classmethod
    def from_dict(cls, data) -> 'RequestHead':
        """Build a head from decoded JSON; unknown keys are ignored"""
        if not isinstance(data, dict):
            raise InvalidDataError("head must be a JSON object")

        dirs = data.get('dirs') or []
        if not isinstance(dirs, list) or not all(isinstance(d, str) for d in dirs):
            raise InvalidDataError("field dirs must be a list of strings")

        head = cls(
            action=_as_str(data.get('action'), 'action'),
            device_name=_as_str(data.get('deviceName'), 'deviceName'),
            time_ip=_as_str(data.get('timeIp'), 'timeIp'),
            file_id=_as_int(data.get('fileID'), 'fileID'),
            file_size=_as_int(data.get('fileSize'), 'fileSize'),
            path=_as_str(data.get('path'), 'path'),
            dirs=dirs,
            upload_type=_as_str(data.get('uploadType'), 'uploadType'),
            start=_as_int(data.get('start'), 'start'),
            end=_as_int(data.get('end'), 'end'),
            data_len=_as_int(data.get('dataLen'), 'dataLen'),
            op_id=_as_int(data.get('opID'), 'opID'),
            files_count_in_this_op=_as_int(data.get('filesCountInThisOp'), 'filesCountInThisOp'),
        )
        if head.data_len < 0:
            raise InvalidDataError(f"negative dataLen: {head.data_len}")
        return head


@dataclass
class PathInfo:
    """One entry of a files manifest"""
    type: str
    path: str
    save_path: str = ""
    size: int = 0

    def to_dict(self) -> dict:
        return {
            'type': self.type,
            'path': self.path,
            'savePath': self.save_path,
            'size': self.size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PathInfo':
        return cls(
            type=data.get('type', ''),
            path=data.get('path', ''),
            save_path=data.get('savePath', ''),
            size=data.get('size', 0),
        )


@dataclass
class ResponseHead:
    """Head frame written back for every response"""
    code: int = StatusCode.OK
    msg: str = ""
    data_type: str = ""
    data_len: int = 0
    paths: Optional[List[PathInfo]] = None

    @property
    def ok(self) -> bool:
        return self.code == StatusCode.OK

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'msg': self.msg,
            'dataType': self.data_type,
            'dataLen': self.data_len,
            'paths': [p.to_dict() for p in self.paths] if self.paths is not None else None,
        }

    @classmethod
    def from_dict(cls, data) -> 'ResponseHead':
        if not isinstance(data, dict):
            raise InvalidDataError("response head must be a JSON object")
        paths = data.get('paths')
        return cls(
            code=data.get('code', 0),
            msg=data.get('msg', ''),
            data_type=data.get('dataType') or '',
            data_len=data.get('dataLen', 0),
            paths=[PathInfo.from_dict(p) for p in paths] if paths is not None else None,
        )


@dataclass
class MatchResponse:
    """Payload of a successful match, carried as JSON in ResponseHead.msg"""
    device_name: str
    secret_key_hex: str

    def to_json(self) -> str:
        return json.dumps({
            'deviceName': self.device_name,
            'secretKeyHex': self.secret_key_hex,
        }, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> 'MatchResponse':
        data = json.loads(text)
        return cls(
            device_name=data.get('deviceName', ''),
            secret_key_hex=data.get('secretKeyHex', ''),
        )
