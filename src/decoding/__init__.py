"""
Decoding of encoded monitor images into flat pixel buffers.
"""

from .strip_decoder import StripDecoder, decode_image

__all__ = ["StripDecoder", "decode_image"]
