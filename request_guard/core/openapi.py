"""OpenAPI customization utilities.

Enriches the generated schema with:
- A security scheme documenting the CSRF header clients must echo back
- Tags metadata
- Per-path exemptions for read-only endpoints

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_UNSAFE_METHODS = {"post", "put", "patch", "delete"}


def apply_openapi_customizations(app: FastAPI, *, csrf_header: str = "X-CSRF-Token") -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes.CsrfToken (header ``csrf_header``)
    - Requires the scheme on state-changing operations only; read-only
      operations get ``security: []``
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "CsrfToken",
            {
                "type": "apiKey",
                "in": "header",
                "name": csrf_header,
                "description": (
                    "Token from GET /v1/csrf. Required on POST/PUT/PATCH/DELETE "
                    "together with the signature cookie set by the same call."
                ),
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "CSRF",
                "description": "Issuance of double-submit CSRF tokens.",
            },
            {
                "name": "Health",
                "description": "Liveness and readiness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for method, method_obj in methods.items():
                if not isinstance(method_obj, dict):
                    continue
                if method.lower() in _UNSAFE_METHODS:
                    method_obj.setdefault("security", [{"CsrfToken": []}])
                else:
                    method_obj["security"] = []

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
