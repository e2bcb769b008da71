import pytest

from tripplanner.core.settings import Settings


@pytest.fixture
def test_settings():
    return Settings(
        environment="test",
        google_maps_api_key="test-key",
        mongodb_uri="",
        augmentation_timeout_seconds=5,
    )


@pytest.fixture
def production_settings():
    return Settings(
        environment="production",
        google_maps_api_key="test-key",
        mongodb_uri="",
        augmentation_timeout_seconds=5,
    )
