import asyncio


def run_async_function(async_func, *args, **kwargs):
    # Used to drive async functions from sync code (tests, shell)
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(async_func(*args, **kwargs))

    raise RuntimeError(
        f"{async_func.__name__} must be awaited when an event loop is running"
    )
