import logging

import pytest

from schemasync.logging_config import configure_logging


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    # keep structlog off stdout so command output stays parseable
    configure_logging(logging.WARNING)
