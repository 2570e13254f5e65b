import json
import time
from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence

from .chunking import ContentChunk

MANIFEST_VERSION = 1


@dataclass(frozen=True)
class ManifestEntry:
    chunk_id: str
    frame_index: int
    byte_offset: int


def build_manifest(chunks: Sequence[ContentChunk]) -> List[ManifestEntry]:
    """Map each chunk to its offset in the processed (possibly compressed) stream."""
    entries = []
    offset = 0
    for frame_index, chunk in enumerate(chunks):
        entries.append(ManifestEntry(chunk_id=chunk.chunk_id, frame_index=frame_index, byte_offset=offset))
        offset += len(chunk.data)
    return entries


def manifest_document(result) -> Dict:
    """JSON-ready view of an EncodingResult."""
    first = result.frames[0].metadata
    return {
        'version': MANIFEST_VERSION,
        'created_utc': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        'metadata': asdict(result.metadata),
        'qr': {
            'version': first.qr_version,
            'error_correction': first.qr_error_correction,
            'width': result.frames[0].width,
            'height': result.frames[0].height,
        },
        'chunks': [asdict(e) for e in result.manifest],
    }


def save_manifest(result, path: str):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(manifest_document(result), f, indent=2)


def load_manifest(path: str) -> Dict:
    with open(path, 'r', encoding='utf-8') as f:
        doc = json.load(f)
    doc['chunks'] = [ManifestEntry(**e) for e in doc.get('chunks', [])]
    return doc
