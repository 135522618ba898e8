from metaboard.api.main import app

if __name__ == "__main__":
    import uvicorn

    from metaboard.core import config

    host = config.env_str("METABOARD_HOST", "0.0.0.0")
    port = config.env_int("METABOARD_PORT", 3000)
    uvicorn.run(app, host=host, port=port)
