"""CLI entry point for the ingestion pipeline.

Usage: parts-counter-ingest
or python -m parts_counter_ingest.ingest

Environment variable (optional):
- PCI_CONFIG: path to the JSON settings file (default: ./appsettings.json)

Exits with status 1 when the configuration is unusable or the batch itself
crashes. Individual bad files are moved to the error folder and don't
change the exit status.
"""

import logging
import sys

from parts_counter_ingest.config import load_settings
from parts_counter_ingest.errors import ConfigurationError
from parts_counter_ingest.ingestion.pipeline import run_ingestion

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger().setLevel(getattr(logging, level.upper()))


def main() -> None:
    configure_logging()
    try:
        settings = load_settings()
        configure_logging(settings.log_level)
        report = run_ingestion(settings)
        logger.info(
            "Done. %d of %d files ingested.", report.succeeded, report.files_found
        )
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception:
        logger.exception("Ingestion failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
