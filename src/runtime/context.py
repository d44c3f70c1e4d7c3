from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from decoding.strip_decoder import StripDecoder
from metadata.base import MetadataProvider
from models.config import Config
from models.frame import Frame
from pipeline.stages.publish import Publisher, PublishedFile
from viewer.notifier import ViewerNotifier


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    metadata: MetadataProvider
    publisher: Publisher
    notifier: Optional[ViewerNotifier]
    decoder: StripDecoder = field(default_factory=StripDecoder)

    # Observability
    system_stats: dict = field(default_factory=dict)

    # Last publish, for status reporting only
    last_published: Optional[PublishedFile] = None

    def record_publish(self, frame: Frame, published: PublishedFile) -> None:
        self.last_published = published
        self.system_stats["last_publish_ts"] = published.timestamp
        self.system_stats["last_frame_index"] = frame.index
        self.system_stats["last_size"] = (frame.width, frame.height)

    def get_system_stats_copy(self) -> dict:
        return dict(self.system_stats)

    def close(self) -> None:
        try:
            self.metadata.close()
        except Exception as e:
            logging.warning(f"Error closing metadata provider: {e}")

    @classmethod
    def build(cls, config: Config, metadata: MetadataProvider, **overrides: Any) -> "RuntimeContext":
        """Create a context with the default publisher and notifier for `config`."""
        publisher = overrides.pop("publisher", None) or Publisher(config.publish)
        notifier = overrides.pop(
            "notifier",
            ViewerNotifier(config.viewer.host, config.viewer.port, config.viewer.timeout),
        )
        return cls(config=config, metadata=metadata, publisher=publisher, notifier=notifier, **overrides)
