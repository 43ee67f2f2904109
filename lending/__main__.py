import uvicorn

from lending.config import HOST, PORT, LOG_LEVEL


def main():
    uvicorn.run(
        "lending.endpoints:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
