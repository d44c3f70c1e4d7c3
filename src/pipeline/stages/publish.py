"""
Publish stage: writes the viewer image file and the beam center side-file.

Image file layout: 512 byte header followed by width*height little-endian
uint32 samples, row-major.

With atomic publishing both files are first written to temporary files in
their target directories and renamed into place only after both writes
succeeded, so the viewer never sees a half-written image and a failed
side-file write leaves the previous publication untouched. The side-file is
renamed first; if the image rename then fails, the previous side-file is put
back so the pair on disk still matches.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models.config import PublishConfig
from models.errors import PublishIOError
from models.frame import Frame
from models.metadata import AcquisitionMetadata
from .header import HEADER_BYTES, format_number


@dataclass
class PublishedFile:
    """Result of a successful publish."""
    image_path: str
    beam_center_path: str
    width: int
    height: int
    nbytes: int
    timestamp: float


def beam_center_line(beam_x: float, beam_y: float, width: int, height: int) -> str:
    """Side-file content: "<beamX> <beamY> <width> <height>"."""
    return " ".join(format_number(v) for v in (float(beam_x), float(beam_y), int(width), int(height)))


class Publisher:
    """
    Writes header + pixels to the image path and the beam center side-file.

    Example:
        publisher = Publisher(PublishConfig(image_path="/tmp/eiger_monitor"))
        published = publisher.publish(header, frame, metadata)
    """

    def __init__(self, config: Optional[PublishConfig] = None):
        self.config = config or PublishConfig()

    @property
    def image_path(self) -> str:
        return self.config.image_path

    @property
    def beam_center_path(self) -> str:
        return self.config.beam_center_path

    def publish(self, header: bytes, frame: Frame, metadata: AcquisitionMetadata) -> PublishedFile:
        """
        Publish one frame.

        Raises:
            PublishIOError: If either file cannot be written. Nothing is
                committed in that case when publishing atomically.
        """
        if len(header) != HEADER_BYTES:
            raise ValueError(f"Header must be {HEADER_BYTES} bytes, got {len(header)}")
        if not frame.is_valid:
            raise ValueError(f"Refusing to publish invalid frame {frame!r}")

        pixels = frame.to_bytes()
        side_text = beam_center_line(
            metadata.beam_center_x, metadata.beam_center_y, frame.width, frame.height
        )

        if self.config.atomic:
            self._publish_atomic(header, pixels, side_text)
        else:
            self._publish_in_place(header, pixels, side_text)

        return PublishedFile(
            image_path=self.image_path,
            beam_center_path=self.beam_center_path,
            width=frame.width,
            height=frame.height,
            nbytes=len(header) + len(pixels),
            timestamp=time.time(),
        )

    def _publish_atomic(self, header: bytes, pixels: bytes, side_text: str) -> None:
        staged: List[Tuple[str, str]] = []
        try:
            previous_side = self._read_existing(self.beam_center_path)
            staged.append((self._stage(self.image_path, [header, pixels]), self.image_path))
            staged.append((self._stage(self.beam_center_path, [side_text.encode("ascii")]), self.beam_center_path))
        except OSError as e:
            self._discard(staged)
            raise PublishIOError(f"Unable to write publication files: {e}") from e

        (image_tmp, _), (side_tmp, _) = staged
        try:
            os.replace(side_tmp, self.beam_center_path)
        except OSError as e:
            self._discard(staged)
            raise PublishIOError(f"Unable to move beam center file into place: {e}") from e

        try:
            os.replace(image_tmp, self.image_path)
        except OSError as e:
            self._discard(staged)
            self._restore_side_file(previous_side)
            raise PublishIOError(f"Unable to move image file into place: {e}") from e

    def _restore_side_file(self, previous: Optional[bytes]) -> None:
        """Put back the side-file that matched the image still on disk."""
        try:
            if previous is None:
                os.unlink(self.beam_center_path)
            else:
                tmp_path = self._stage(self.beam_center_path, [previous])
                try:
                    os.replace(tmp_path, self.beam_center_path)
                except OSError:
                    self._discard([(tmp_path, self.beam_center_path)])
                    raise
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.error(f"Failed to restore beam center file {self.beam_center_path}: {e}")

    @staticmethod
    def _read_existing(path: str) -> Optional[bytes]:
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def _publish_in_place(self, header: bytes, pixels: bytes, side_text: str) -> None:
        # Side-file first: if it cannot be opened the image is not touched
        try:
            with open(self.beam_center_path, "w") as f:
                f.write(side_text)
        except OSError as e:
            raise PublishIOError(f"Unable to open beam center file for writing: {e}") from e
        try:
            with open(self.image_path, "wb") as f:
                f.write(header)
                f.write(pixels)
        except OSError as e:
            raise PublishIOError(f"Unable to write image file {self.image_path}: {e}") from e

    @staticmethod
    def _stage(final_path: str, chunks: List[bytes]) -> str:
        directory = os.path.dirname(os.path.abspath(final_path))
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(final_path)}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
            os.chmod(tmp_path, 0o644)
        except OSError:
            Publisher._discard([(tmp_path, final_path)])
            raise
        return tmp_path

    @staticmethod
    def _discard(staged: List[Tuple[str, str]]) -> None:
        for tmp_path, _ in staged:
            try:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
            except OSError as e:
                logging.warning(f"Failed to remove temporary file {tmp_path}: {e}")
