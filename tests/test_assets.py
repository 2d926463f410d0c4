"""
Unit tests for the asset store and the image rendering step.
"""

from io import BytesIO

import pytest
from fastapi import HTTPException
from PIL import Image

from app.utils.assets import AssetStore, check_image_filename, render_picture


@pytest.fixture
def store(tmp_path):
    return AssetStore(tmp_path / "uploads", "v9")


class TestAssetStore:
    def test_keys_follow_version_workshop_picture_layout(self, store):
        assert store.workshop_main_key(3) == "v9/workshops/3/mainPic.png"
        assert store.workshop_album_key(3, "abc") == "v9/workshops/3/album/abc.png"
        assert store.teacher_key(7) == "v9/teachers/7/pic.png"

    def test_save_creates_directories(self, store):
        path = store.save("v9/workshops/1/album/x.png", b"data")
        assert path.read_bytes() == b"data"
        assert store.open_path("v9/workshops/1/album/x.png") == path

    def test_save_twice_tolerates_existing_directory(self, store):
        store.save("v9/workshops/1/mainPic.png", b"one")
        store.save("v9/workshops/1/mainPic.png", b"two")
        assert store.open_path("v9/workshops/1/mainPic.png").read_bytes() == b"two"

    def test_missing_file_is_none(self, store):
        assert store.open_path("v9/workshops/1/mainPic.png") is None

    def test_keys_escaping_root_are_refused(self, store):
        assert store.path_for("../outside.png") is None
        assert store.open_path("../../etc/passwd") is None
        with pytest.raises(ValueError):
            store.save("../outside.png", b"x")

    def test_delete_is_best_effort(self, store):
        store.save("v9/teachers/1/pic.png", b"x")
        assert store.delete("v9/teachers/1/pic.png") is True
        assert store.delete("v9/teachers/1/pic.png") is False
        assert store.delete(None) is False

    def test_picture_ids_are_unique(self):
        assert len({AssetStore.new_picture_id() for _ in range(50)}) == 50


class TestRenderPicture:
    @pytest.mark.parametrize("fmt,mode", [("PNG", "RGBA"), ("JPEG", "RGB"), ("PNG", "P"), ("PNG", "L")])
    def test_output_is_fixed_canvas_png(self, fmt, mode):
        buf = BytesIO()
        Image.new(mode, (333, 1000)).save(buf, format=fmt)

        out = render_picture(buf.getvalue())
        with Image.open(BytesIO(out)) as img:
            assert img.format == "PNG"
            assert img.size == (1280, 960)

    def test_garbage_is_rejected(self):
        with pytest.raises(HTTPException) as exc:
            render_picture(b"\x00\x01garbage")
        assert exc.value.status_code == 400


class TestFilenameCheck:
    @pytest.mark.parametrize("name", ["a.png", "a.jpg", "A.JPEG", "x.y.PnG"])
    def test_allowed(self, name):
        check_image_filename(name)

    @pytest.mark.parametrize("name", ["a.gif", "a.png.exe", "png", "", None, "a.webp"])
    def test_rejected(self, name):
        with pytest.raises(HTTPException) as exc:
            check_image_filename(name)
        assert exc.value.status_code == 400
