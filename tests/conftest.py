"""
Pytest configuration and shared fixtures for the image edit service tests.

Provides small synthetic images and a scripted stand-in for the Gemini
editor so no test touches the network.
"""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from imageedit_service.chroma_key import ChromaKeyConfig
from imageedit_service.exceptions import ExternalEditFailure
from imageedit_service.history import Snapshot

MAGENTA = (255, 0, 255, 255)
RED = (255, 0, 0, 255)


def encode_image(pixels, fmt="PNG"):
    """Encode an (H, W, 4) uint8 array as image bytes."""
    image = Image.fromarray(np.asarray(pixels, dtype=np.uint8))
    if fmt == "JPEG":
        image = image.convert("RGB")
    buf = BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


def subject_on_magenta(size=8, border=2):
    """A red square surrounded by a flat magenta background."""
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    pixels[:, :] = MAGENTA
    pixels[border : size - border, border : size - border] = RED
    return pixels


class FakeEditor:
    """
    Scripted ImageEditor: returns queued snapshots in order, or raises
    queued exceptions. Records every call.
    """

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.on_call = None

    def edit(self, snapshot, instruction):
        self.calls.append((snapshot, instruction))
        if self.on_call is not None:
            self.on_call()
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def magenta_key():
    """The default magenta key configuration."""
    return ChromaKeyConfig.magenta()


@pytest.fixture
def upload_snapshot():
    """A plain 4x4 grey PNG standing in for a user upload."""
    pixels = np.full((4, 4, 4), 128, dtype=np.uint8)
    pixels[..., 3] = 255
    return Snapshot(data=encode_image(pixels), mime_type="image/png")


@pytest.fixture
def magenta_result():
    """What the model returns for a background-removal request."""
    return Snapshot(data=encode_image(subject_on_magenta()), mime_type="image/png")


@pytest.fixture
def failing_editor():
    return FakeEditor(ExternalEditFailure("quota exceeded"))
