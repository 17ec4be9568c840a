import json
import os

from src.api.main import app
from src.services.routing import ENTITY_PATH_SEGMENTS

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Document the public path segments accepted by the entity endpoint
openapi_schema["x-public-path-segments"] = sorted(ENTITY_PATH_SEGMENTS.values())

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
