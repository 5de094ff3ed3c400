"""Tests for core configuration classes."""

from __future__ import annotations

from pathlib import Path

import pytest

from bucketsync.core.config import DEFAULT_POLL_INTERVAL, ConfigError, SyncConfig


class TestSyncConfig:
    """Tests for SyncConfig class."""

    def test_init_defaults(self, tmp_path: Path) -> None:
        """Should initialize with defaults for optional fields."""
        config = SyncConfig(bucket_name="my-bucket", local_root=tmp_path)

        assert config.region == "us-east-1"
        assert config.dry_run is False
        assert config.poll_interval_seconds == DEFAULT_POLL_INTERVAL
        assert config.endpoint_url is None

    def test_local_root_expanded(self) -> None:
        """Should expand ~ in the local root."""
        config = SyncConfig(bucket_name="b", local_root=Path("~/sync"))

        assert config.local_root == Path.home() / "sync"

    def test_with_overrides_ignores_none(self, tmp_path: Path) -> None:
        """Only non-None overrides should be applied."""
        config = SyncConfig(bucket_name="b", local_root=tmp_path, region="eu-west-3")

        updated = config.with_overrides(bucket_name="other", region=None, dry_run=True)

        assert updated.bucket_name == "other"
        assert updated.region == "eu-west-3"
        assert updated.dry_run is True
        assert config.bucket_name == "b"

    def test_validate_ok(self, tmp_path: Path) -> None:
        """A complete configuration should validate."""
        SyncConfig(bucket_name="b", local_root=tmp_path).validate()

    def test_validate_missing_bucket(self, tmp_path: Path) -> None:
        """Should reject a missing bucket."""
        with pytest.raises(ConfigError, match="BUCKET_NAME"):
            SyncConfig(bucket_name="", local_root=tmp_path).validate()

    def test_validate_missing_root(self) -> None:
        """Should reject a missing local root."""
        with pytest.raises(ConfigError, match="LOCAL_FOLDER_PATH"):
            SyncConfig(bucket_name="b", local_root=None).validate()

    def test_validate_root_not_directory(self, tmp_path: Path) -> None:
        """Should reject a root that does not exist."""
        with pytest.raises(ConfigError, match="does not exist"):
            SyncConfig(bucket_name="b", local_root=tmp_path / "nope").validate()

    def test_validate_interval(self, tmp_path: Path) -> None:
        """Should reject a non-positive poll interval."""
        config = SyncConfig(bucket_name="b", local_root=tmp_path, poll_interval_seconds=0)

        with pytest.raises(ConfigError, match="positive"):
            config.validate()


class TestFromEnv:
    """Tests for loading configuration from the environment."""

    def test_reads_variables(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Should read every supported variable."""
        clean_env.setenv("BUCKET_NAME", "photos")
        clean_env.setenv("LOCAL_FOLDER_PATH", str(tmp_path))
        clean_env.setenv("AWS_REGION", "eu-west-3")
        clean_env.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        clean_env.setenv("AWS_ACCESS_KEY_SECRET", "secret")
        clean_env.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
        clean_env.setenv("DRY_RUN", "true")
        clean_env.setenv("POLL_INTERVAL_SECONDS", "15")

        config = SyncConfig.from_env(tmp_path / "absent.env")

        assert config.bucket_name == "photos"
        assert config.local_root == tmp_path
        assert config.region == "eu-west-3"
        assert config.access_key_id == "AKIA"
        assert config.secret_access_key == "secret"
        assert config.endpoint_url == "http://localhost:9000"
        assert config.dry_run is True
        assert config.poll_interval_seconds == 15.0

    def test_standard_secret_name(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """AWS_SECRET_ACCESS_KEY should be accepted as well."""
        clean_env.setenv("AWS_SECRET_ACCESS_KEY", "std-secret")

        config = SyncConfig.from_env(tmp_path / "absent.env")

        assert config.secret_access_key == "std-secret"

    def test_defaults(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Missing variables should fall back to defaults."""
        config = SyncConfig.from_env(tmp_path / "absent.env")

        assert config.bucket_name == ""
        assert config.local_root is None
        assert config.region == "us-east-1"
        assert config.dry_run is False
        assert config.poll_interval_seconds == DEFAULT_POLL_INTERVAL

    @pytest.mark.parametrize("value", ["1", "yes", "ON", "True"])
    def test_dry_run_truthy(
        self, clean_env: pytest.MonkeyPatch, tmp_path: Path, value: str
    ) -> None:
        """Common truthy spellings should enable dry run."""
        clean_env.setenv("DRY_RUN", value)

        assert SyncConfig.from_env(tmp_path / "absent.env").dry_run is True

    def test_dry_run_false(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Other values should leave dry run off."""
        clean_env.setenv("DRY_RUN", "false")

        assert SyncConfig.from_env(tmp_path / "absent.env").dry_run is False

    def test_invalid_interval(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """A non-numeric interval should raise ConfigError."""
        clean_env.setenv("POLL_INTERVAL_SECONDS", "often")

        with pytest.raises(ConfigError, match="POLL_INTERVAL_SECONDS"):
            SyncConfig.from_env(tmp_path / "absent.env")

    def test_env_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Values should be loaded from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text(f"BUCKET_NAME=from-file\nLOCAL_FOLDER_PATH={tmp_path}\n")

        config = SyncConfig.from_env(env_file)

        assert config.bucket_name == "from-file"
        assert config.local_root == tmp_path

    def test_environment_overrides_env_file(
        self, clean_env: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Process variables should win over the .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("BUCKET_NAME=from-file\n")
        clean_env.setenv("BUCKET_NAME", "from-env")

        assert SyncConfig.from_env(env_file).bucket_name == "from-env"
