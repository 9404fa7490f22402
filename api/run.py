# api/run.py
# Launcher for the FastAPI app: prints a banner, then hands off to Uvicorn.
# HOST / PORT come from the environment (PORT defaults to 10000 like the old Node proxy).

import os

import uvicorn

from crmsync.config import settings


def main():
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "10000"))
    print("============================================================")
    print(f"CRM upsert proxy ({settings.SERVICE_NAME})")
    print(f"HubSpot configured: {bool(settings.HUBSPOT_API_KEY)}")
    print(f"Serving on http://{host}:{port}  | health: /api/health")
    print("============================================================", flush=True)
    uvicorn.run("api.main:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
