"""Node store RPC message definitions (JSON framing over gRPC)."""

from dataclasses import dataclass
from typing import Optional
import json
import base64


@dataclass
class ChunkHeader:
    """Identifies the chunk carried by a PutChunk stream."""
    node_id: int
    transfer_id: str
    chunk_index: int
    total_size: int
    checksum: str

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.__dict__).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'ChunkHeader':
        """Deserialize from JSON bytes."""
        return cls(**json.loads(data))


@dataclass
class PutChunkRequest:
    """Request message for PutChunk RPC (client streaming: header first, then data pieces)."""
    header: Optional[ChunkHeader] = None
    data: Optional[bytes] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = {}
        if self.header:
            obj['header'] = self.header.__dict__
        if self.data is not None:
            obj['data'] = base64.b64encode(self.data).decode('ascii')
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PutChunkRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        header = ChunkHeader(**obj['header']) if 'header' in obj else None
        piece = base64.b64decode(obj['data']) if 'data' in obj else None
        return cls(header=header, data=piece)


@dataclass
class PutChunkResponse:
    """Response message for PutChunk RPC."""
    success: bool
    locator: Optional[str] = None
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'success': self.success,
            'locator': self.locator,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PutChunkResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(
            success=obj['success'],
            locator=obj.get('locator'),
            error_message=obj.get('error_message')
        )


@dataclass
class LocatorRequest:
    """Request message for GetChunk and DeleteChunk RPCs."""
    locator: str

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({'locator': self.locator}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'LocatorRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(locator=obj['locator'])


@dataclass
class GetChunkResponse:
    """One data piece of a GetChunk stream."""
    data: bytes

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'data': base64.b64encode(self.data).decode('ascii')
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'GetChunkResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(data=base64.b64decode(obj['data']))


@dataclass
class DeleteChunkResponse:
    """Response message for DeleteChunk RPC."""
    success: bool
    existed: bool = False
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'success': self.success,
            'existed': self.existed,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'DeleteChunkResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(
            success=obj['success'],
            existed=obj.get('existed', False),
            error_message=obj.get('error_message')
        )


@dataclass
class PingResponse:
    """Response message for Ping RPC."""
    available: bool
    node_count: int = 0

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'available': self.available,
            'node_count': self.node_count
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PingResponse':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(available=obj['available'], node_count=obj.get('node_count', 0))
