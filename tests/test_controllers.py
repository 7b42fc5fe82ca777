from __future__ import annotations

import io

import pytest
from PIL import Image

from conftest import encode_image
from resize_kro.compression_controller import CompressionController
from resize_kro.dimension_model import Dimensions
from resize_kro.errors import CompressionError, InvalidInputError, RenderError
from resize_kro.models import SourceImage
from resize_kro.resize_core import decode_image
from resize_kro.resize_controller import ResizeController


class TestResizeController:
    def test_resize_produces_resize_artifact(self, source_image):
        artifact = ResizeController().resize(source_image, Dimensions(300, 150))

        assert artifact.origin == "resize"
        assert (artifact.width, artifact.height) == (300, 150)
        assert artifact.filename == "processed-image.jpg"
        with Image.open(io.BytesIO(artifact.data)) as img:
            assert img.size == (300, 150)

    def test_uses_configured_quality(self, source_image):
        calls = []

        def fake_rasterize(source, width, height, quality):
            calls.append((width, height, quality))
            return b"jpeg"

        controller = ResizeController(quality=70, rasterizer=fake_rasterize)
        controller.resize(source_image, Dimensions(10, 5))
        assert calls == [(10, 5, 70)]

    def test_zero_area_rejected_before_rasterizing(self, source_image):
        calls = []
        controller = ResizeController(rasterizer=lambda *args: calls.append(args) or b"")

        with pytest.raises(RenderError):
            controller.resize(source_image, Dimensions(0, 150))
        assert calls == []

    def test_missing_source_rejected(self):
        with pytest.raises(RenderError):
            ResizeController().resize(None, Dimensions(10, 10))

    def test_rasterizer_failure_becomes_render_error(self, source_image):
        def broken(*_args):
            raise MemoryError("too big")

        with pytest.raises(RenderError):
            ResizeController(rasterizer=broken).resize(source_image, Dimensions(10, 10))


class TestCompressionController:
    def test_build_options_converts_kb_and_caps_dimension(self, source_image):
        options = CompressionController().build_options(source_image, 512)

        assert options.max_size_mb == 0.5
        assert options.max_size_bytes == 512 * 1024
        assert options.max_width_or_height == 1000
        assert options.initial_quality == 0.9

    def test_target_larger_than_source_keeps_size(self, source_image):
        target_kb = source_image.size_kb + 100
        result = CompressionController().compress_to_target(source_image, target_kb)

        assert result.artifact.origin == "compress"
        assert result.artifact.size_bytes <= source_image.size_bytes
        assert result.achieved_kb <= source_image.size_kb
        assert result.target_achieved

    def test_reports_achieved_size(self, noise_source):
        result = CompressionController().compress_to_target(noise_source, 40)

        assert result.achieved_kb == result.artifact.size_kb
        assert result.artifact.size_bytes < noise_source.size_bytes
        assert result.artifact.width <= noise_source.width

    @pytest.mark.parametrize("target_kb", [None, 0, -10, float("inf"), float("nan")])
    def test_invalid_target_never_reaches_capability(self, source_image, target_kb):
        calls = []
        controller = CompressionController(compressor=lambda data, options: calls.append(options) or data)

        with pytest.raises(InvalidInputError):
            controller.compress_to_target(source_image, target_kb)
        assert calls == []

    def test_capability_failure_becomes_compression_error(self, source_image):
        def broken(_data, _options):
            raise RuntimeError("worker crashed")

        with pytest.raises(CompressionError) as excinfo:
            CompressionController(compressor=broken).compress_to_target(source_image, 10)
        assert "目標サイズ" in excinfo.value.user_message

    def test_undecodable_source_becomes_compression_error(self):
        source = SourceImage(name="fake.jpg", data=b"garbage", width=10, height=10)
        with pytest.raises(CompressionError):
            CompressionController().compress_to_target(source, 1)

    def test_unchanged_source_reports_oriented_size(self):
        exif = Image.Exif()
        exif[0x0112] = 6  # 90度回転
        data = encode_image(Image.new("RGB", (400, 200)), "JPEG", exif=exif.tobytes())
        source = decode_image(data, name="rotated.jpg")

        result = CompressionController().compress_to_target(source, source.size_kb + 100)

        assert result.artifact.data == source.data
        assert (result.artifact.width, result.artifact.height) == (source.width, source.height) == (200, 400)

    def test_unchanged_png_keeps_png_extension(self, png_bytes):
        source = decode_image(png_bytes, name="sample.png")

        result = CompressionController().compress_to_target(source, source.size_kb + 100)

        assert result.artifact.format == "PNG"
        assert result.artifact.filename == "processed-image.png"

    def test_recompressed_output_is_jpeg(self, noise_source):
        artifact = CompressionController().compress_to_target(noise_source, 40).artifact

        assert artifact.format == "JPEG"
        assert artifact.filename == "processed-image.jpg"
