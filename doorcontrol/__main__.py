import asyncio
import sys

from .main import main


def run():
    sys.exit(asyncio.run(main(*sys.argv[1:2])))


if __name__ == "__main__":
    run()
