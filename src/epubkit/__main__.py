from __future__ import annotations

import sys
from typing import List, Optional


def cli(argv: Optional[List[str]] = None) -> int:
    """Exécute epubkit et retourne toujours un code de sortie entier."""
    try:
        from .main import main  # type: ignore
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Failed to import epubkit.main: {exc}\n")
        return 1

    try:
        code = main(argv)
    except KeyboardInterrupt:  # pragma: no cover
        sys.stderr.write("Interrupted\n")
        return 130
    except SystemExit as se:
        return int(se.code) if isinstance(se.code, int) else 1
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Unhandled error: {exc}\n")
        return 1
    return 0 if code is None else int(code)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
