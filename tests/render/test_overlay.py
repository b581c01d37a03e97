"""Tests for the overlay asset."""

import asyncio

import numpy as np
import pytest
from PIL import Image

from nounify.core.errors import OverlayAssetError
from nounify.render.overlay import FRAME_RED, OverlayAsset, render_noggles


class TestRenderNoggles:
    """Tests for the built-in asset."""

    def test_native_size(self):
        img = render_noggles()

        assert img.size == (150, 80)
        assert img.mode == "RGBA"

    def test_has_transparent_background_and_red_frame(self):
        pixels = np.array(render_noggles())

        assert pixels[0, 0, 3] == 0
        assert tuple(pixels[18, 55]) == FRAME_RED

    def test_resized(self):
        assert render_noggles((300, 160)).size == (300, 160)


class TestOverlayAsset:
    """Tests for OverlayAsset loading."""

    def test_pixels_before_load_raises(self):
        with pytest.raises(OverlayAssetError):
            OverlayAsset().pixels

    @pytest.mark.asyncio
    async def test_builtin_loads(self):
        asset = OverlayAsset()

        pixels = await asset.wait_loaded()

        assert asset.is_loaded
        assert pixels.shape == (80, 150, 4)

    @pytest.mark.asyncio
    async def test_loads_from_path(self, tmp_path):
        path = tmp_path / "glasses.png"
        Image.new("RGBA", (150, 80), (0, 200, 0, 255)).save(path)
        asset = OverlayAsset(path=str(path))

        pixels = await asset.wait_loaded()

        assert (pixels[..., 1] == 200).all()

    @pytest.mark.asyncio
    async def test_missing_path_raises(self, tmp_path):
        asset = OverlayAsset(path=str(tmp_path / "missing.png"))

        with pytest.raises(OverlayAssetError):
            await asset.wait_loaded()

    @pytest.mark.asyncio
    async def test_concurrent_waits_share_one_load(self, monkeypatch, overlay_pixels):
        calls = []

        def counting_decode(path, size):
            calls.append(path)
            return overlay_pixels

        monkeypatch.setattr("nounify.render.overlay._decode_asset", counting_decode)
        asset = OverlayAsset()

        await asyncio.gather(asset.wait_loaded(), asset.wait_loaded(), asset.wait_loaded())

        assert len(calls) == 1

    def test_from_settings(self, monkeypatch):
        from nounify.core.config import get_settings

        monkeypatch.setenv("OVERLAY_PATH", "/assets/glasses-red.png")
        get_settings.cache_clear()

        asset = OverlayAsset.from_settings()

        assert asset.path == "/assets/glasses-red.png"
        assert asset.size == (150, 80)
