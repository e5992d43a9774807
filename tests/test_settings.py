import json
import logging

from config.settings import IngestionSettings, PipelineConfig
from observability.logging import JSONFormatter


def test_pipeline_defaults():
    config = PipelineConfig()
    assert config.user_retry_limit == 20
    assert config.user_retry_delay_seconds == 2.0
    assert config.token_budget == 12000
    assert config.link_retry_limit == 0


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv('PARSER_VERSION', '20250101')
    monkeypatch.setenv('USER_RETRY_LIMIT', '5')
    monkeypatch.setenv('READER_BASE_URL', 'https://reader.internal/')
    monkeypatch.setenv('MINIO_SECURE', 'true')
    monkeypatch.setenv('LOG_JSON', 'true')

    settings = IngestionSettings.from_env()

    assert settings.pipeline.parser_version == '20250101'
    assert settings.pipeline.user_retry_limit == 5
    assert settings.reader.base_url == 'https://reader.internal'
    assert settings.storage.secure is True
    assert settings.log_json is True


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("services.weblink", logging.INFO, __file__, 10,
                               "processed %s", ("https://a.com",), None)
    record.url = "https://a.com"

    entry = json.loads(JSONFormatter(service_name="linkfoundry").format(record))

    assert entry["message"] == "processed https://a.com"
    assert entry["service"] == "linkfoundry"
    assert entry["level"] == "INFO"
    assert entry["url"] == "https://a.com"


def test_redis_queue_settings_from_env(monkeypatch):
    monkeypatch.setenv('JOB_POLL_INTERVAL', '0.5')
    monkeypatch.setenv('JOB_VISIBILITY_TIMEOUT', '120')
    monkeypatch.setenv('WORKER_CONCURRENCY', '8')

    redis_config = IngestionSettings.from_env().redis

    assert redis_config.poll_interval == 0.5
    assert redis_config.visibility_timeout == 120
    assert redis_config.worker_concurrency == 8
