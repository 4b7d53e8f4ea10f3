"""Allow `python -m examsplit`."""

from examsplit.cli import main

raise SystemExit(main())
