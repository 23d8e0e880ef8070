import pytest

from whitebg_service import config
from whitebg_service.mask_builder import DEFAULT_TOLERANCE


def test_defaults(monkeypatch):
    for name in ["TOLERANCE", "FEATHER_STRENGTH", "MASK_STRATEGY", "OUTPUT_FORMAT", "R2_ENDPOINT"]:
        monkeypatch.delenv(name, raising=False)
    settings = config.Settings(_env_file=None)

    assert settings.tolerance == DEFAULT_TOLERANCE
    assert settings.feather_strength == 0.0
    assert settings.mask_strategy == "labels"
    assert settings.output_format == "PNG"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("TOLERANCE", "25")
    monkeypatch.setenv("MASK_STRATEGY", "QUEUE")
    monkeypatch.setenv("OUTPUT_FORMAT", "webp")
    settings = config.Settings(_env_file=None)

    assert settings.tolerance == 25
    assert settings.mask_strategy == "queue"
    assert settings.output_format == "WEBP"


def test_per_channel_tolerance_setting():
    assert config.Settings(tolerance=(10, 20, 30)).tolerance == (10, 20, 30)


@pytest.mark.parametrize(
    "overrides",
    [
        {"tolerance": 300},
        {"tolerance": (1, 2)},
        {"feather_strength": 1.2},
        {"mask_strategy": "recursive"},
        {"output_format": "JPEG"},
        {"max_batch_workers": 0},
    ],
)
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValueError):
        config.Settings(**overrides)


def test_r2_configured():
    assert not config.r2_configured(config.Settings(r2_endpoint="https://r2.example.com"))
    assert config.r2_configured(
        config.Settings(
            r2_endpoint="https://r2.example.com",
            r2_access_key_id="id",
            r2_secret_access_key="secret",
            r2_bucket_name="bucket",
        )
    )
