"""Tests for settings, secret encryption, logging helpers, health and the runtime."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography.fernet import Fernet

from config.settings import Settings, get_settings
from pressdesk.core.crypto import CryptoManager, SecretDecryptionError
from pressdesk.core.health import check_database, get_health_status
from pressdesk.core.safe_logger import log_summary, single_line
from pressdesk.integrations.wordpress import check_module_health
from pressdesk.publishing.errors import RemoteRejected, ValidationFailed


# ===================================================================
# Settings
# ===================================================================

class TestSettings:

    @pytest.mark.unit
    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/pressdesk")
        for key in ("LOG_FORMAT", "WP_REQUEST_TIMEOUT", "DEBUG", "PORT"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings()

        assert settings.wp_request_timeout == 30.0
        assert settings.debug is False
        assert settings.port == 8000
        assert settings.structured_logs is False

    @pytest.mark.unit
    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValueError):
            Settings()

    @pytest.mark.unit
    def test_json_logs_and_cache(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/pressdesk")
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        get_settings.cache_clear()
        try:
            assert get_settings().structured_logs is True
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


# ===================================================================
# Secret encryption
# ===================================================================

class TestCryptoManager:

    @pytest.mark.unit
    def test_direct_fernet_key(self):
        crypto = CryptoManager(Fernet.generate_key().decode())
        stored = crypto.encrypt_secret("xxxx yyyy")
        assert stored != "xxxx yyyy"
        assert crypto.decrypt_secret(stored) == "xxxx yyyy"
        assert crypto.get_encryption_info()["key_source"] == "environment_direct"

    @pytest.mark.unit
    def test_passphrase_key_is_stable(self):
        stored = CryptoManager("correct horse battery").encrypt_secret("pw")
        assert CryptoManager("correct horse battery").decrypt_secret(stored) == "pw"

    @pytest.mark.unit
    def test_wrong_key_raises(self):
        stored = CryptoManager("one key").encrypt_secret("pw")
        with pytest.raises(SecretDecryptionError):
            CryptoManager("another key").decrypt_secret(stored)

    @pytest.mark.unit
    def test_temporary_key_is_flagged_insecure(self):
        info = CryptoManager().get_encryption_info()
        assert info["key_source"] == "temporary"
        assert info["secure_setup"] is False

    @pytest.mark.unit
    def test_optional_helpers(self):
        crypto = CryptoManager("k")
        assert crypto.encrypt_optional(None) is None
        assert crypto.decrypt_optional("") is None
        with pytest.raises(ValueError):
            crypto.encrypt_secret("")


# ===================================================================
# Logging helpers
# ===================================================================

class TestLoggingHelpers:

    @pytest.mark.unit
    def test_single_line(self):
        assert "\n" not in single_line("<html>\n<body>\n</html>")
        assert "TRUNCATED" in single_line("x" * 50, max_chars=10)

    @pytest.mark.unit
    def test_log_summary_is_one_line(self, caplog):
        with caplog.at_level(logging.INFO, logger="pressdesk.test"):
            log_summary("Reconciliation finished", {"checked": 3, "deleted": 1}, logger_name="pressdesk.test")
        (record,) = caplog.records
        assert record.getMessage() == "📊 Reconciliation finished | checked: 3 | deleted: 1"
        assert record.extra_data == {"checked": 3, "deleted": 1}


# ===================================================================
# Health
# ===================================================================

class TestHealth:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_database(self):
        assert (await check_database(None))["status"] == "unhealthy"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connected_database(self):
        db = MagicMock()
        db.is_connected = True
        db.health_check = AsyncMock(return_value={"status": "healthy", "connected": True, "pool_size": 2})

        status = await get_health_status(db, extra_services={"wordpress": {"status": "healthy"}})

        assert status["status"] == "healthy"
        assert set(status["services"]) == {"database", "wordpress"}
        assert status["services"]["database"]["pool_size"] == 2
        assert "response_time_ms" in status["services"]["database"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_query(self):
        db = MagicMock()
        db.is_connected = True
        db.health_check = AsyncMock(return_value={"status": "unhealthy", "connected": False, "error": "gone"})
        result = await check_database(db)
        assert result["status"] == "unhealthy"
        assert "gone" in result["error"]

    @pytest.mark.unit
    def test_module_health_requires_database_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
        health = check_module_health()
        assert health["healthy"] is False
        assert health["missing_vars"] == ["DATABASE_URL"]
        assert health["warnings"]


# ===================================================================
# Error mapping
# ===================================================================

class TestPublishingErrors:

    @pytest.mark.unit
    def test_remote_status_passes_through(self):
        assert RemoteRejected(remote_status=413).status_code == 413
        assert RemoteRejected(remote_status=None).status_code == 502
        assert RemoteRejected(remote_status=302).status_code == 502

    @pytest.mark.unit
    def test_details_are_truncated(self):
        body = RemoteRejected(remote_status=500, remote_body="x" * 5000).to_dict()
        assert len(body["details"]) == 2000

    @pytest.mark.unit
    def test_minimal_shape(self):
        assert ValidationFailed("Title is required").to_dict() == {
            "error": "Title is required",
            "kind": "validation",
        }


# ===================================================================
# Runtime
# ===================================================================

class TestPublishingRuntime:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_init_wires_workflows_over_injected_parts(self, runtime, wp_client):
        await runtime.init()

        assert runtime.is_initialized
        assert wp_client.is_open
        assert runtime.publisher.locks is runtime.locks
        assert runtime.reconciliation.storage is runtime.storage
        assert runtime.profiles.client is wp_client

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shutdown_leaves_injected_client_open(self, runtime, wp_client):
        await runtime.init()
        await runtime.shutdown()
        assert not runtime.is_initialized
        assert wp_client.is_open

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_without_database(self, runtime):
        await runtime.init()
        health = await runtime.health()
        assert health["status"] == "unhealthy"
        assert health["services"]["wordpress"]["publishes_in_progress"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_counts_publish_in_flight(self, runtime, storage, wp_client):
        from pressdesk.publishing import PublishRequest

        storage.add_site("S1", is_connected=True)
        storage.add_credential("U1", "S1")
        storage.add_article("A1")
        await runtime.init()

        gate = asyncio.Event()
        original = wp_client.create_post

        async def slow_create_post(*args):
            await gate.wait()
            return await original(*args)

        wp_client.create_post = slow_create_post
        task = asyncio.create_task(runtime.publisher.publish(
            PublishRequest(article_id="A1", site_id="S1", user_id="U1", title="Hello")
        ))
        for _ in range(5):
            await asyncio.sleep(0)

        during = await runtime.health()
        gate.set()
        await task

        assert during["services"]["wordpress"]["publishes_in_progress"] == 1
        assert (await runtime.health())["services"]["wordpress"]["publishes_in_progress"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_health_reports_secrets_and_environment(self, storage, wp_client, monkeypatch):
        from pressdesk.publishing import PublishingRuntime

        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/pressdesk")
        monkeypatch.setenv("ENVIRONMENT", "staging")
        runtime = PublishingRuntime(Settings(), storage=storage, client=wp_client,
                                    crypto=CryptoManager("correct horse battery"))
        await runtime.init()

        health = await runtime.health()

        assert health["environment"] == "staging"
        assert health["services"]["secrets"]["status"] == "healthy"
        assert health["services"]["secrets"]["key_source"] == "environment_derived"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_init_without_settings_or_storage(self):
        from pressdesk.publishing import PublishingRuntime

        with pytest.raises(RuntimeError):
            await PublishingRuntime().init()
