"""Avventura: launcher. Optionally seeds demo stories, then serves the API."""

import argparse
import logging
import os

import uvicorn

from avventura.config import Settings

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))


def main():
    parser = argparse.ArgumentParser(description="Avventura story server")
    parser.add_argument("--database-url", default=None,
                        help="SQLAlchemy database URL (default: DATABASE_URL or ./data/avventura.db)")
    parser.add_argument("--seed", action="store_true",
                        help="Upsert the demo stories before starting")
    parser.add_argument("--seed-only", action="store_true",
                        help="Upsert the demo stories and exit")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info"),
                        choices=["critical", "error", "warning", "info", "debug"])
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = Settings.from_env()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})
        # The uvicorn worker builds its own Settings from the environment
        os.environ["DATABASE_URL"] = args.database_url

    if args.seed or args.seed_only:
        from avventura.seed import create_demo_data
        from avventura.storage import StoryStore

        store = StoryStore(settings.database_url)
        try:
            slugs = create_demo_data(store)
        finally:
            store.close()
        print(f"Seeded {len(slugs)} stories: {', '.join(slugs)}")
        if args.seed_only:
            return

    print(f"Starting backend on http://localhost:{args.port} ...")
    uvicorn.run(
        "backend.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
