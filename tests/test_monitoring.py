from unittest.mock import patch

from app.core.config import Settings
from app.core.monitoring import init_sentry


def test_sentry_is_skipped_without_dsn():
    with patch("sentry_sdk.init") as sentry_init:
        assert init_sentry("worker", config=Settings(sentry_dsn=None)) is False

    sentry_init.assert_not_called()


def test_sentry_is_initialized_and_tagged():
    config = Settings(sentry_dsn="https://key@sentry.example/1", environment="staging")

    with patch("sentry_sdk.init") as sentry_init, patch("sentry_sdk.set_tag") as set_tag:
        assert init_sentry("main", config=config) is True

    assert sentry_init.call_args.kwargs["environment"] == "staging"
    set_tag.assert_called_once_with("component", "main")
