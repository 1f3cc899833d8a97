# main.py
import os

from medintake.main import configure_logging, create_app

configure_logging()

app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
