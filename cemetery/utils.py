import functools
import inspect

from loguru import logger


def log_remote_call(func):
    """
    A decorator for async remote operations that logs entry and failures.

    Features:
    - Logs the operation name and bound parameters before the call
    - Logs the exception type and message, then re-raises it unchanged
    - Preserves function metadata and return values
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_name = func.__name__

        sig = inspect.signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()
        params = {k: v for k, v in bound_args.arguments.items() if k != "self"}

        logger.debug(f"Calling {func_name} with params: {params}")

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.debug(f"{func_name} failed: {type(e).__name__}: {e}")
            raise

    return wrapper
