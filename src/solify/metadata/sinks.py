"""Metadata sinks: the narrow interface to renderers and persistence."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import ResourceExhausted
from .models import TestSuiteMetadata

logger = logging.getLogger(__name__)


class MetadataSink(ABC):
    """Base class for everything that consumes assembled metadata."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def emit(self, metadata: TestSuiteMetadata) -> List[Path]:
        pass


class JsonFileSink(MetadataSink):
    """Writes the whole record to one JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return "json"

    def emit(self, metadata: TestSuiteMetadata) -> List[Path]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            f.write(metadata.to_json())
        logger.info("Wrote metadata to %s", self.path)
        return [self.path]


class ChunkedJsonSink(MetadataSink):
    """
    One file per instruction plus an index, for stores with a size ceiling.

    Every chunk is checked against the ceiling before anything is written,
    so an oversized artifact leaves the directory untouched.
    """

    INDEX_FILE = "index.json"

    def __init__(
        self,
        directory: Union[str, Path],
        max_cases_per_chunk: int = 64,
        max_chunk_bytes: Optional[int] = None,
    ):
        self.directory = Path(directory)
        self.max_cases_per_chunk = max_cases_per_chunk
        self.max_chunk_bytes = max_chunk_bytes

    @property
    def name(self) -> str:
        return "chunked"

    def emit(self, metadata: TestSuiteMetadata) -> List[Path]:
        chunks: Dict[str, str] = {}
        for position, ix in enumerate(metadata.per_instruction):
            if len(ix.test_cases) > self.max_cases_per_chunk:
                raise ResourceExhausted(
                    f"Instruction '{ix.name}' has {len(ix.test_cases)} cases "
                    f"(ceiling {self.max_cases_per_chunk})",
                    [ix.name],
                )
            body = json.dumps(ix.to_dict(), indent=2, sort_keys=True)
            if self.max_chunk_bytes is not None and len(body.encode("utf-8")) > self.max_chunk_bytes:
                raise ResourceExhausted(
                    f"Chunk for '{ix.name}' is {len(body.encode('utf-8'))} bytes "
                    f"(ceiling {self.max_chunk_bytes})",
                    [ix.name],
                )
            chunks[f"{position:03d}_{ix.name}.json"] = body

        index = metadata.to_dict()
        index["perInstruction"] = list(chunks)

        self.directory.mkdir(parents=True, exist_ok=True)
        written = []
        for filename, body in chunks.items():
            path = self.directory / filename
            path.write_text(body)
            written.append(path)
        index_path = self.directory / self.INDEX_FILE
        index_path.write_text(json.dumps(index, indent=2, sort_keys=True))
        written.append(index_path)

        logger.info("Wrote %d chunks to %s", len(chunks), self.directory)
        return written
