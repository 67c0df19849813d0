"""ASGI entrypoint for the e-class API.

The scheduler runs inside the API process, so serve it with a single worker.
"""

import uvicorn

from eclass_manager.api.app import create_app
from eclass_manager.containers import build_container

app = create_app(build_container())


if __name__ == "__main__":
    uvicorn.run("eclass_manager.api.asgi:app", host="0.0.0.0", port=8000, workers=1)
