"""Pytest configuration and fixtures for dirsnap tests."""

import logging
from pathlib import Path

import pytest
from hypothesis import settings, Phase, HealthCheck

from dirsnap.config import Configuration, LoggingConfig

# Configure hypothesis to use fewer examples for faster test runs
# Disable shrinking phase to speed up tests further
settings.register_profile(
    "fast",
    max_examples=2,
    deadline=10000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.register_profile(
    "ci",
    max_examples=50,
    deadline=10000,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.register_profile(
    "dev",
    max_examples=2,
    deadline=10000,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

# Use the fast profile by default
settings.load_profile("fast")


def make_config(log_dir: Path, lock_timeout: int = 1) -> Configuration:
    """Configuration with logs redirected under ``log_dir``."""
    config = Configuration(
        logging=LoggingConfig(
            level="ERROR",
            log_file=log_dir / "dirsnap.log",
            error_log_file=log_dir / "dirsnap.err",
        ),
    )
    config.lock.timeout_seconds = lock_timeout
    return config


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path / "logs")


@pytest.fixture
def scenario_tree(tmp_path):
    """
    Source tree with a nested file and an absolute symlink.

        db/a/file1            "hello"
        db/a/link1 -> /etc/passwd
    """
    source = tmp_path / "db"
    (source / "a").mkdir(parents=True)
    (source / "a" / "file1").write_text("hello")
    (source / "a" / "link1").symlink_to("/etc/passwd")
    return source


@pytest.fixture(autouse=True)
def _reset_dirsnap_logger():
    """Close handlers left on the dirsnap logger by setup_logging."""
    yield
    logger = logging.getLogger("dirsnap")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
