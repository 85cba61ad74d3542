"""Storyweave dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Storyweave dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean and create demo story data")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = (args.data_dir or ROOT / "data").resolve()
    # the reloader imports backend.app in a fresh process; hand it the dir
    os.environ["DATA_DIR"] = str(data_dir)

    if args.demo:
        from backend.demo import create_demo_data
        from storyweave.storage import Storage
        story = create_demo_data(Storage(data_dir))
        print(f"Created demo story {story.id} in {data_dir}")

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    uvicorn.run(
        "backend.app:app", host=HOST, port=int(BACKEND_PORT),
        reload=True, log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
