#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
pytest設定ファイル
共通のフィクスチャやテスト設定を定義
"""

import io

import pytest
from PIL import Image

from resize_kro.resize_core import decode_image


def encode_image(img, fmt="JPEG", **save_kwargs):
    """画像をバイト列にエンコードする"""
    buffer = io.BytesIO()
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def make_noise_image(size):
    """圧縮しにくいノイズ画像を作成"""
    return Image.merge("RGB", [Image.effect_noise(size, 64) for _ in range(3)])


@pytest.fixture
def jpeg_bytes():
    """1000x500 の単色 JPEG"""
    img = Image.new("RGB", (1000, 500), color=(200, 60, 20))
    return encode_image(img, "JPEG", quality=95)


@pytest.fixture
def png_bytes():
    """1920x1080 の透過 PNG"""
    img = Image.new("RGBA", (1920, 1080), color=(0, 255, 0, 0))
    return encode_image(img, "PNG")


@pytest.fixture
def noise_jpeg_bytes():
    """800x600 のノイズ JPEG（目標サイズ圧縮のテスト用）"""
    return encode_image(make_noise_image((800, 600)), "JPEG", quality=95)


@pytest.fixture
def source_image(jpeg_bytes):
    return decode_image(jpeg_bytes, name="sample.jpg")


@pytest.fixture
def noise_source(noise_jpeg_bytes):
    return decode_image(noise_jpeg_bytes, name="noise.jpg")


@pytest.fixture
def sample_files(tmp_path, jpeg_bytes, png_bytes):
    """ディスク上のサンプル画像"""
    files = {}
    files["jpeg"] = tmp_path / "sample.jpg"
    files["jpeg"].write_bytes(jpeg_bytes)
    files["png"] = tmp_path / "sample.png"
    files["png"].write_bytes(png_bytes)
    files["broken"] = tmp_path / "broken.jpg"
    files["broken"].write_bytes(b"not an image at all")
    return files
