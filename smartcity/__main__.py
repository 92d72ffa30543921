"""Run the API with uvicorn: ``python -m smartcity``."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "smartcity.main:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
