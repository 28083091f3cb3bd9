"""
Tests for uploaded image storage.
"""

import io

import pytest
from starlette.datastructures import Headers, UploadFile

from food_ordering.core.errors import ValidationError
from food_ordering.services.storage import UploadStorage


def upload(filename, content_type, content=b"image-bytes"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def storage(tmp_path):
    return UploadStorage(str(tmp_path / "uploads"), max_bytes=16)


@pytest.mark.parametrize("filename,content_type,expected", [
    ("a.png", "image/png", True),
    ("a.JPG", "image/jpeg", True),
    ("a.gif", "image/gif", True),
    ("a.png", "text/plain", False),
    ("a.txt", "image/png", False),
    (None, "image/png", False),
    ("a.png", None, False),
])
def test_is_image(filename, content_type, expected):
    assert UploadStorage.is_image(filename, content_type) is expected


@pytest.mark.anyio
async def test_save_and_discard(storage):
    path = await storage.save(upload("cat.png", "image/png"))

    stored = [p.as_posix() for p in storage.directory.iterdir()]
    assert stored == [path]
    assert path.endswith(".png")

    storage.discard(path)
    assert list(storage.directory.iterdir()) == []
    storage.discard(path)
    storage.discard(None)


@pytest.mark.anyio
async def test_generated_names_are_unique(storage):
    paths = {await storage.save(upload("cat.png", "image/png")) for _ in range(5)}
    assert len(paths) == 5


@pytest.mark.anyio
@pytest.mark.parametrize("file", [
    upload("notes.txt", "text/plain"),
    upload("big.png", "image/png", content=b"x" * 17),
    upload("empty.png", "image/png", content=b""),
])
async def test_save_rejects(storage, file):
    with pytest.raises(ValidationError):
        await storage.save(file)
    assert not storage.directory.exists() or list(storage.directory.iterdir()) == []
