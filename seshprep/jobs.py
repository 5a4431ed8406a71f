"""Command line entry point for scheduled jobs.

    seshprep-cleanup            delete data past its retention period
    python -m seshprep.jobs     same
"""
import argparse
import json
import logging

from seshprep import models  # noqa: F401
from seshprep.blobstore import build_blob_store
from seshprep.database import Base, SessionLocal, engine
from seshprep.services.retention import run_retention_cleanup
from seshprep.utils.logs import configure_logging

logger = logging.getLogger(__name__)


def cleanup(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="seshprep-cleanup", description=__doc__.splitlines()[0])
    parser.parse_args(argv)

    configure_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        report = run_retention_cleanup(db, build_blob_store())
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Retention cleanup failed")
        return 1
    finally:
        db.close()

    print(json.dumps(report.as_dict()))
    return 0


def main():
    raise SystemExit(cleanup())


if __name__ == "__main__":
    main()
