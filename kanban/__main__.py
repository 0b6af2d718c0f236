import uvicorn

from .config import get_settings


def run() -> None:
    settings = get_settings()
    uvicorn.run("kanban.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
