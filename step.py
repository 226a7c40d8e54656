from contextlib import contextmanager
from whatsapp_bot_tests.plugin import log_step
import time


@contextmanager
def step(description: str, continue_on_failure: bool = False, step_type: str = "action"):
    """Context manager for a timed harness step.

    Args:
        description: Human-readable step description
        continue_on_failure: If True, don't re-raise exceptions
        step_type: "action" for interactions, "wait" for reply polling
    """
    start_time = time.time()

    try:
        yield
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        error_msg = str(e).replace("\n", f"\n{' ' * 6}")
        err = f"{type(e).__name__}: {error_msg}" if error_msg else type(e).__name__
        log_step(description, "failed", err, duration_ms=duration_ms, step_type=step_type)
        if not continue_on_failure:
            raise
    else:
        duration_ms = int((time.time() - start_time) * 1000)
        log_step(description, "passed", duration_ms=duration_ms, step_type=step_type)


def info(message: str, outcome: str = "passed"):
    """Log an informational step (no timing).

    Use this for notes such as an option picked automatically or an early
    exit, which are not timed actions.
    """
    log_step(message, outcome, step_type="info")
