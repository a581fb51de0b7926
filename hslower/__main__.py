"""Allow ``python -m hslower``."""

from hslower.main import main

raise SystemExit(main())
