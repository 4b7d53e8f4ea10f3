import pytest
import sys
from pathlib import Path
from PIL import Image

# Add src to sys.path so we can import examsplit
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())


class FakeDetector:
    """
    Detector that replays canned payloads.

    responses maps a page call index (0-based) to a payload or to an
    exception instance that is raised instead.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def detect(self, image_jpeg: bytes):
        response = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        if isinstance(response, Exception):
            raise response
        return response


def draw_block(image: Image.Image, left: int, top: int, right: int, bottom: int, color=(0, 0, 0)):
    """Fill a rectangle (exclusive right/bottom) with color."""
    image.paste(color, (left, top, right, bottom))
    return image


# Common test fixtures
@pytest.fixture
def blank_page():
    """A 1000x1000 white page, so normalized units equal pixels."""
    return Image.new("RGB", (1000, 1000), color="white")


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays = []

    def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep
