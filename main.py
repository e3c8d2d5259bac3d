import uvicorn

from redyce.api import create_app

app = create_app()


if __name__ == "__main__":
    # Services are built from config.yaml / .env when the app starts
    uvicorn.run(app, host="0.0.0.0", port=8000)
