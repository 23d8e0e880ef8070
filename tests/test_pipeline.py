import base64

import numpy as np
import pytest

from whitebg_service import pipeline
from whitebg_service.errors import DecodeError, EncodeError
from whitebg_service.pipeline import (
    RemovalResult,
    remove_background,
    remove_background_to_data_url,
    try_remove_background,
)

from .helpers import BLACK, WHITE, decode_png, enclosed_white_square, png_bytes, ring_with_black_center, solid


def test_four_by_four_ring_scenario(settings):
    out = decode_png(remove_background(png_bytes(ring_with_black_center()), settings=settings))

    expected_alpha = np.zeros((4, 4), dtype=np.uint8)
    expected_alpha[1:3, 1:3] = 255
    assert np.array_equal(out[..., 3], expected_alpha)
    assert (out[1:3, 1:3, :3] == 0).all()


@pytest.mark.parametrize("strategy", ["labels", "queue"])
def test_enclosed_white_square_keeps_opacity(settings, strategy):
    settings.mask_strategy = strategy
    source = enclosed_white_square()

    out = decode_png(remove_background(png_bytes(source), settings=settings))

    assert (out[6:14, 6:14, 3] == 255).all()
    assert (out[:4, :, 3] == 0).all()
    assert (out[:, 16:, 3] == 0).all()
    assert np.array_equal(out[..., :3], source[..., :3])


def test_full_white_image_becomes_fully_transparent(settings):
    out = decode_png(remove_background(png_bytes(solid(9, 6, WHITE)), settings=settings))
    assert out.shape == (6, 9, 4)
    assert (out[..., 3] == 0).all()


def test_opaque_edges_leave_alpha_untouched(settings):
    source = solid(8, 8, (200, 30, 30, 255))
    source[3:5, 3:5] = WHITE
    source[0, 0, 3] = 40

    out = decode_png(remove_background(png_bytes(source), settings=settings))

    assert np.array_equal(out[..., 3], source[..., 3])


def test_black_image_round_trips_identically(settings):
    source = solid(5, 7, BLACK)
    out = decode_png(remove_background(png_bytes(source), settings=settings))
    assert np.array_equal(out, source)


@pytest.mark.parametrize("size", [(1, 1), (13, 2), (3, 17)])
def test_dimensions_preserved(settings, size):
    width, height = size
    out = decode_png(remove_background(png_bytes(enclosed_white_square()[:height, :width]), settings=settings))
    assert out.shape[:2] == (height, width)


def test_tolerance_argument_overrides_settings(settings):
    source = solid(3, 3, BLACK)
    source[0, 0] = (225, 225, 225, 255)

    default = decode_png(remove_background(png_bytes(source), settings=settings))
    wider = decode_png(remove_background(png_bytes(source), tolerance=30, settings=settings))

    assert default[0, 0, 3] == 255
    assert wider[0, 0, 3] == 0


def test_feather_strength_from_settings(settings):
    settings.feather_strength = 1.0
    source = solid(5, 5, WHITE)
    source[1:4, 1:4] = BLACK

    out = decode_png(remove_background(png_bytes(source), settings=settings))

    assert out[2, 2, 3] == 255
    assert out[1, 1, 3] == 0


def test_invalid_feather_strength_raises(settings):
    with pytest.raises(ValueError):
        remove_background(png_bytes(solid(2, 2)), feather_strength=1.5, settings=settings)


def test_decode_error_aborts_before_pixel_work(settings, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("mask builder must not run")

    monkeypatch.setattr(pipeline, "build_background_mask", fail)
    with pytest.raises(DecodeError):
        remove_background(b"not an image", settings=settings)


def test_data_url_output(settings):
    url = remove_background_to_data_url(png_bytes(ring_with_black_center()), settings=settings)

    assert url.startswith("data:image/png;base64,")
    out = decode_png(base64.b64decode(url.split(",", 1)[1]))
    assert out[0, 0, 3] == 0


def test_webp_output_format(settings):
    settings.output_format = "WEBP"
    result = try_remove_background(png_bytes(ring_with_black_center()), settings=settings)
    assert result.ok
    assert result.mime_type == "image/webp"
    assert result.image_bytes[8:12] == b"WEBP"


def test_try_remove_background_reports_decode_failure(settings):
    source = b"garbage"
    result = try_remove_background(source, settings=settings)

    assert not result.ok
    assert isinstance(result.error, DecodeError)
    assert result.image_bytes is None
    assert result.width is None and result.height is None
    assert result.image_or(source) is source


def test_try_remove_background_reports_encode_failure(settings, monkeypatch):
    def broken_encode(grid, image_format="PNG"):
        raise EncodeError("writer unavailable")

    monkeypatch.setattr(pipeline, "encode_image", broken_encode)
    result = try_remove_background(png_bytes(ring_with_black_center()), settings=settings)

    assert isinstance(result.error, EncodeError)
    assert result.image_or(b"original") == b"original"


def test_try_remove_background_success(settings):
    result = try_remove_background(png_bytes(solid(6, 2, WHITE)), settings=settings)
    assert result.ok
    assert (result.width, result.height) == (6, 2)
    assert result.error is None
    assert result.image_or(b"original") == result.image_bytes


def test_try_remove_background_propagates_configuration_errors(settings):
    with pytest.raises(ValueError):
        try_remove_background(png_bytes(solid(2, 2)), tolerance=999, settings=settings)


def test_removal_result_defaults():
    assert not RemovalResult().ok


def test_debug_dump_writes_mask(settings, tmp_path):
    settings.debug = True
    settings.debug_output_dir = tmp_path / "debug"

    remove_background(png_bytes(ring_with_black_center()), settings=settings)

    dumps = list((tmp_path / "debug").glob("background_mask_*.png"))
    assert len(dumps) == 1
    mask = decode_png(dumps[0].read_bytes())
    assert mask[0, 0, 0] == 255
    assert mask[1, 1, 0] == 0


def test_debug_dumps_do_not_overwrite_each_other(settings, tmp_path):
    settings.debug = True
    settings.debug_output_dir = tmp_path

    remove_background(png_bytes(ring_with_black_center()), settings=settings)
    remove_background(png_bytes(solid(3, 3, WHITE)), settings=settings)

    assert len(list(tmp_path.glob("background_mask_*.png"))) == 2


def test_whole_number_float_tolerance_is_accepted(settings):
    result = try_remove_background(png_bytes(ring_with_black_center()), tolerance=15.0, settings=settings)
    assert result.ok
    assert decode_png(result.image_bytes)[0, 0, 3] == 0


@pytest.mark.parametrize("tolerance", [15.5, "123", (10, 10)])
def test_malformed_tolerance_raises_value_error(settings, tolerance):
    with pytest.raises(ValueError):
        try_remove_background(png_bytes(ring_with_black_center()), tolerance=tolerance, settings=settings)


def test_tolerance_checked_before_decode(settings, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("image must not be decoded")

    monkeypatch.setattr(pipeline, "decode_image", fail)
    with pytest.raises(ValueError):
        remove_background(b"not even read", tolerance=300, settings=settings)
