# backend/main.py
import uvicorn

from app.config import APP_HOST, APP_PORT, APP_ENV


def main() -> None:
    uvicorn.run("app.main:app", host=APP_HOST, port=APP_PORT, reload=APP_ENV == "development", log_config=None)


if __name__ == "__main__":
    main()
