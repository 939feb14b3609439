#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from lgu_sso.db import SessionLocal
from lgu_sso.logging_utils import setup_json_logging
from lgu_sso.services.reference_data import import_reference_data

logger = logging.getLogger("lgu_sso.reference_import")


def main() -> None:
    parser = argparse.ArgumentParser(description="Load offices and PSGC locations from a JSON file.")
    parser.add_argument("path", type=Path, help='JSON document with "offices" and "locations" arrays')
    args = parser.parse_args()

    setup_json_logging()
    payload = json.loads(args.path.read_text(encoding="utf-8"))
    with SessionLocal() as db:
        counts = import_reference_data(db, payload)
    logger.info("reference_data_loaded", extra={"path": str(args.path), **counts})


if __name__ == "__main__":
    main()
