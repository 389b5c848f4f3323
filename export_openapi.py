#!/usr/bin/env python3
"""Export the OpenAPI schema to a JSON file for the mobile client team."""

import json
from pathlib import Path

from siren.main import app

if __name__ == "__main__":
    output_path = Path(__file__).parent / "openapi.json"

    openapi_schema = app.openapi()

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(openapi_schema, f, indent=2, ensure_ascii=False)

    print(f"OpenAPI schema exported to: {output_path}")
