from pathlib import Path

import pytest

from storybook_images.artifacts import ArtifactKey
from storybook_images.errors import PersistenceError
from storybook_images.gateway.config import GatewayConfig, load_config
from storybook_images.gateway.storage import LocalBlobStore, StoryImageStorage

CDN = "https://cdn.example.test"


@pytest.fixture
def store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs", CDN)


@pytest.fixture
def storage(store: LocalBlobStore) -> StoryImageStorage:
    return StoryImageStorage(store, ["images-stories", "story-images"])


def test_local_store_writes_and_reports_objects(store: LocalBlobStore, tmp_path: Path) -> None:
    store.upload("images-stories", "S1/ch 1/cover.jpeg", b"jpeg", "image/jpeg")

    assert (tmp_path / "blobs" / "images-stories" / "S1" / "ch 1" / "cover.jpeg").read_bytes() == b"jpeg"
    assert store.exists("images-stories", "S1/ch 1/cover.jpeg")
    assert not store.exists("story-images", "S1/ch 1/cover.jpeg")
    assert store.public_url("images-stories", "S1/ch 1/cover.jpeg") == f"{CDN}/images-stories/S1/ch%201/cover.jpeg"


def test_local_store_overwrites(store: LocalBlobStore, tmp_path: Path) -> None:
    store.upload("images-stories", "S1/cover.jpeg", b"first", "image/jpeg")
    store.upload("images-stories", "S1/cover.jpeg", b"second", "image/jpeg")

    bucket_dir = tmp_path / "blobs" / "images-stories" / "S1"
    assert (bucket_dir / "cover.jpeg").read_bytes() == b"second"
    assert [path.name for path in bucket_dir.iterdir()] == ["cover.jpeg"]


def test_local_store_rejects_escaping_paths(store: LocalBlobStore) -> None:
    with pytest.raises(ValueError, match="escapes"):
        store.upload("images-stories", "../outside.jpeg", b"x", "image/jpeg")


def test_storage_paths(storage: StoryImageStorage) -> None:
    assert storage.path_for(ArtifactKey.build("S1", None, "cover"), "image/jpeg") == "S1/cover.jpeg"
    assert storage.path_for(ArtifactKey.build("S1", "ch-2", "scene_4"), "image/jpeg") == "S1/ch-2/scene_4.jpeg"
    assert storage.path_for(ArtifactKey.build("S1", "S1", "closing"), "image/png") == "S1/closing.png"


def test_upload_goes_to_current_bucket(storage: StoryImageStorage, store: LocalBlobStore) -> None:
    stored = storage.upload("S1/cover.jpeg", b"jpeg", "image/jpeg")

    assert stored.bucket == "images-stories"
    assert stored.public_url == f"{CDN}/images-stories/S1/cover.jpeg"
    assert store.exists("images-stories", "S1/cover.jpeg")


def test_upload_failure_is_persistence_error(storage: StoryImageStorage) -> None:
    with pytest.raises(PersistenceError) as exc_info:
        storage.upload("../../escape.jpeg", b"jpeg", "image/jpeg")
    assert exc_info.value.status_code == 500


def test_resolve_prefers_recorded_bucket_then_configured_order(
    storage: StoryImageStorage,
    store: LocalBlobStore,
) -> None:
    store.upload("story-images", "S1/cover.jpeg", b"old", "image/jpeg")
    assert storage.resolve_public_url("S1/cover.jpeg").bucket == "story-images"

    store.upload("images-stories", "S1/cover.jpeg", b"new", "image/jpeg")
    assert storage.resolve_public_url("S1/cover.jpeg").bucket == "images-stories"
    assert storage.resolve_public_url("S1/cover.jpeg", "story-images").bucket == "story-images"
    assert storage.resolve_public_url("S1/missing.jpeg") is None


def test_legacy_probe_order(storage: StoryImageStorage, store: LocalBlobStore) -> None:
    store.upload("story-images", "S1/ch-1/scene_1.png", b"chapter", "image/png")
    found = storage.find_legacy_object("S1", "ch-1", "scene_1")
    assert found is not None
    assert found.path == "S1/ch-1/scene_1.png"

    store.upload("story-images", "S1/scene_1.webp", b"story", "image/webp")
    found = storage.find_legacy_object("S1", "ch-1", "scene_1")
    assert found is not None
    assert found.path == "S1/scene_1.webp"
    assert found.public_url == f"{CDN}/story-images/S1/scene_1.webp"


def test_legacy_probe_ignores_current_bucket(storage: StoryImageStorage, store: LocalBlobStore) -> None:
    store.upload("images-stories", "S1/cover.jpeg", b"new", "image/jpeg")
    assert storage.find_legacy_object("S1", None, "cover") is None


def test_storage_requires_a_bucket(store: LocalBlobStore) -> None:
    with pytest.raises(ValueError, match="bucket"):
        StoryImageStorage(store, [])


def test_load_config_resolves_env_vars(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_GEMINI_KEY", "gemini-secret")
    config_file = tmp_path / "config.yml"
    config_file.write_text(
        "\n".join(
            [
                "database_url: sqlite:///./images.db",
                "image_provider_default: OpenAI",
                "image_provider_fallback: gemini",
                "providers:",
                "  gemini:",
                "    api_key: ${TEST_GEMINI_KEY}",
                "  openai:",
                "    api_key: ${TEST_UNSET_OPENAI_KEY}",
                "legacy_image_buckets:",
                "  - story-images",
                "  - images-stories",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(str(config_file))

    assert config.database_url == "sqlite:///./images.db"
    assert config.image_provider_default == "openai"
    assert config.image_provider_fallback == "gemini"
    assert config.provider_api_key("gemini") == "gemini-secret"
    assert config.provider_api_key("openai") == "${TEST_UNSET_OPENAI_KEY}"
    assert config.image_buckets == ["images-stories", "story-images"]


def test_missing_config_file_uses_defaults_and_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GATEWAY_PROVIDER_TIMEOUT_MS", "1500")
    monkeypatch.setenv("GATEWAY_FALLBACK_ON_SAFETY", "false")

    config = load_config("/nonexistent/config.yml")

    assert config.provider_timeout_ms == 1500
    assert config.fallback_on_safety is False
    assert config.image_bucket == "images-stories"
    assert config.jpeg_quality == 92
    assert config.provider_api_key("gemini") is None


def test_unknown_provider_is_rejected() -> None:
    with pytest.raises(ValueError):
        GatewayConfig(image_provider_default="midjourney")
