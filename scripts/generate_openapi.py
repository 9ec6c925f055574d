"""Export the DreamSaver OpenAPI document, by default to ``docs/openapi.json``."""

from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dreamsaver.main import create_application


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    destination = Path(args[0]) if args else ROOT / "docs" / "openapi.json"
    destination.parent.mkdir(parents=True, exist_ok=True)

    document = create_application().openapi()
    destination.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
    print(f"OpenAPI document for {document['info']['title']} written to {destination}")


if __name__ == "__main__":
    main()
