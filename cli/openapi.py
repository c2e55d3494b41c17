"""
CLI wrapper: Generate the OpenAPI document.

Usage:
    uv run openapi                  # writes docs/openapi.json
    uv run openapi -o api.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from schema_engine.main import create_app


def main() -> None:
    parser = argparse.ArgumentParser(prog="openapi", description="Dump the OpenAPI schema")
    parser.add_argument("-o", "--output", default="docs/openapi.json")
    args = parser.parse_args()

    openapi_schema = create_app(run_lifespan=False).openapi()

    output_file = Path(args.output)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(openapi_schema, f, indent=2)
        f.write("\n")

    print(f"[OK] OpenAPI schema generated: {output_file}")
    print(f"   Title: {openapi_schema['info']['title']}")
    print(f"   Version: {openapi_schema['info']['version']}")
    print(f"   Endpoints: {len(openapi_schema['paths'])} paths")
    for path, methods in openapi_schema["paths"].items():
        for method, details in methods.items():
            tags = details.get("tags", [""])
            summary = details.get("summary", "No summary")
            print(f"   {method.upper():6} {path:60} [{tags[0]}] {summary}")
