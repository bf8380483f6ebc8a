# SPDX-License-Identifier: Apache-2.0

"""
Engine configuration read from the environment.
"""

import os
from dataclasses import dataclass

STORE_MEMORY = "memory"
STORE_MONGODB = "mongodb"


@dataclass
class EngineConfig:
    """ReliefSync configuration settings."""
    environment: str = "development"
    app_id: str = "default"
    store_backend: str = STORE_MEMORY
    mongodb_uri: str = "mongodb://localhost:27017/reliefsync_dev"
    mongodb_database: str = "reliefsync_dev"
    google_maps_api_key: str = ""
    geocoding_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    geocoding_timeout_seconds: float = 10.0
    otel_enabled: bool = True
    service_version: str = "1.0.0"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build configuration from environment variables."""
        store_backend = os.getenv("RELIEFSYNC_STORE_BACKEND", STORE_MEMORY).lower()
        if store_backend not in (STORE_MEMORY, STORE_MONGODB):
            raise ValueError(f"Unsupported RELIEFSYNC_STORE_BACKEND: {store_backend}")

        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            app_id=os.getenv("RELIEFSYNC_APP_ID", "default"),
            store_backend=store_backend,
            mongodb_uri=os.getenv("MONGODB_URI", cls.mongodb_uri),
            mongodb_database=os.getenv("MONGODB_DATABASE", cls.mongodb_database),
            google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY", ""),
            geocoding_url=os.getenv("GEOCODING_URL", cls.geocoding_url),
            geocoding_timeout_seconds=float(os.getenv("GEOCODING_TIMEOUT_SECONDS", "10")),
            otel_enabled=os.getenv("OTEL_ENABLED", "true").lower() == "true",
            service_version=os.getenv("SERVICE_VERSION", "1.0.0"),
        )
