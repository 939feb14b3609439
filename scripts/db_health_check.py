#!/usr/bin/env python
from __future__ import annotations

import json
import sys

from lgu_sso.db import engine
from lgu_sso.services.db_health import run_checks


def main() -> int:
    report = run_checks(engine)
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0 if report["ok"] else 1


if __name__ == "__main__":
    sys.exit(main())
