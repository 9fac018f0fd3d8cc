"""
ASGI entrypoint.

    uvicorn licitadesk.main:app
"""

from licitadesk.app import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("licitadesk.main:app", host="0.0.0.0", port=8000)
