"""Allow ``python -m dbnbook``."""

from __future__ import annotations

from dbnbook.cli.main import main

if __name__ == "__main__":
    main()
