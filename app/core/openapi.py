"""OpenAPI metadata and customization utilities.

Enriches the generated schema with tags metadata and the ``X-API-Key``
security scheme, required only on admin operations.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

ADMIN_PATH_PREFIX = "/api/admin"


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and admin security."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Admin API key via the X-API-Key header.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {"name": "Waitlist", "description": "Public signup endpoint."},
            {"name": "Health", "description": "Liveness and readiness checks."},
            {"name": "Admin", "description": "Abuse-control operations (API key required)."},
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            security = [{"ApiKeyAuth": []}] if path.startswith(ADMIN_PATH_PREFIX) else []
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = security

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
