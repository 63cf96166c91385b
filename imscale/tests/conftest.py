from collections.abc import Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from imscale.config.config import Settings
from imscale.main import create_app

EXIF_ORIENTATION = 0x0112


def write_image(path: Path, size: tuple[int, int], fmt: str, orientation: int | None = None) -> Path:
    """Write a solid-colour test image, optionally tagged with an EXIF orientation."""
    mode = "RGBA" if fmt in ("PNG", "WEBP") else "RGB"
    img = Image.new(mode, size, (200, 40, 40, 255)[: len(mode)])
    params = {}
    if fmt == "ICO":
        params["sizes"] = [size]
    if orientation is not None:
        exif = Image.Exif()
        exif[EXIF_ORIENTATION] = orientation
        params["exif"] = exif
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path, format=fmt, **params)
    return path


@pytest.fixture
def image_root(tmp_path: Path) -> Path:
    root = tmp_path / "images"
    root.mkdir()
    return root


@pytest.fixture
def make_image(image_root: Path) -> Callable[..., Path]:
    def _factory(name: str, size: tuple[int, int] = (200, 200), fmt: str = "PNG", orientation: int | None = None):
        return write_image(image_root / name, size, fmt, orientation)

    return _factory


@pytest.fixture
def make_client(image_root: Path, tmp_path: Path):
    """Build an app rooted at ``image_root`` and return an unopened client for it.

    Keyword arguments override Settings fields.
    """

    def _factory(**overrides) -> AsyncClient:
        overrides.setdefault("public_dir", str(tmp_path / "public"))
        app = create_app(Settings(image_dir=str(image_root), **overrides))
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _factory


@pytest.fixture
async def client(make_client):
    async with make_client() as ac:
        yield ac
