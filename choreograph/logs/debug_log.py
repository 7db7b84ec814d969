import logging
import sys
import json
import inspect
import time
import traceback
from functools import wraps

# ANSI colors for console output
BLUE = '\033[94m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
RED = '\033[91m'
PURPLE = '\033[95m'
CYAN = '\033[96m'
BOLD = '\033[1m'
END = '\033[0m'

DEBUG_FORMAT = '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'

# Header values that never reach the logs
REDACTED_HEADERS = {"authorization", "cookie"}


def format_object(obj):
    if isinstance(obj, (list, dict, tuple, set)):
        try:
            return json.dumps(obj, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(obj)
    return str(obj)


def _redact(headers):
    return {
        name: ("***" if name.lower() in REDACTED_HEADERS else value)
        for name, value in headers.items()
    }


class DebugLogger:
    """Verbose logger with caller information and colored console output"""

    def __init__(self, name="debug", level=logging.DEBUG):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        self.formatter = logging.Formatter(DEBUG_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(self.formatter)
        self.logger.addHandler(console_handler)

    def set_level(self, level):
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    def debug(self, message, *args, **kwargs):
        """Debug line prefixed with the calling file, line and function"""
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        frame = inspect.currentframe().f_back
        filename = frame.f_code.co_filename
        lineno = frame.f_lineno
        function = frame.f_code.co_name

        marker = filename.rfind("choreograph")
        if marker != -1:
            filename = filename[marker:]

        caller_info = f"{BLUE}[{filename}:{lineno} - {function}]{END}"
        self.logger.debug(f"{caller_info} {message}", *args, **kwargs)

    def info(self, message, *args, **kwargs):
        self.logger.info(f"{GREEN}{message}{END}", *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self.logger.warning(f"{YELLOW}{message}{END}", *args, **kwargs)

    def error(self, message, *args, **kwargs):
        """Error line, with the active traceback appended when there is one"""
        trace = traceback.format_exc()
        if trace and trace != 'NoneType: None\n':
            message = f"{message}\n{RED}Traceback:{END}\n{trace}"
        self.logger.error(f"{RED}{message}{END}", *args, **kwargs)

    def start_func(self, func_name, params=None):
        params_str = f" with params: {format_object(params)}" if params else ""
        self.debug(f"{PURPLE}Entering {func_name}{END}{params_str}")

    def end_func(self, func_name, result=None, execution_time=None):
        result_str = ""
        if result is not None:
            formatted = format_object(result)
            result_str = f", result: {formatted[:1000]}"
            if len(formatted) > 1000:
                result_str += "... [truncated]"

        time_str = f", took {execution_time:.4f}s" if execution_time else ""
        self.debug(f"{PURPLE}Leaving {func_name}{END}{result_str}{time_str}")

    def log_exception(self, message="Exception raised"):
        exc_type, exc_value, _ = sys.exc_info()
        if exc_type:
            self.error(f"{message}: {exc_type.__name__}: {exc_value}")
        else:
            self.error(message)

    def log_request(self, request):
        method = getattr(request, 'method', 'UNKNOWN')
        url = str(getattr(request, 'url', 'UNKNOWN'))
        client = getattr(request, 'client', None)
        client_host = client.host if client else "unknown"
        headers = _redact(dict(getattr(request, 'headers', {})))

        self.debug(
            f"{CYAN}HTTP request:{END} {method} {url}\n"
            f"{CYAN}Client:{END} {client_host}\n"
            f"{CYAN}Headers:{END} {json.dumps(headers, indent=2, ensure_ascii=False)}"
        )

    def log_response(self, response, process_time=None):
        status_code = getattr(response, 'status_code', 0)
        color = GREEN if status_code < 400 else YELLOW if status_code < 500 else RED

        info = f"{CYAN}HTTP response:{END} {color}Status {status_code}{END}"
        if process_time is not None:
            info += f"\n{CYAN}Process time:{END} {process_time:.3f}s"
        self.debug(info)

    def log_data(self, name, data):
        self.debug(f"{CYAN}{name}:{END}\n{format_object(data)}")


def _call_arguments(func, args, kwargs):
    func_args = dict(zip(inspect.getfullargspec(func).args, args))
    func_args.update(kwargs)
    # Sessions and bound instances only add noise
    for skipped in ("self", "cls", "db"):
        func_args.pop(skipped, None)
    return func_args


def log_function(logger=None, expected=()):
    """Log entry, exit and failures of a function; works for sync and async callables.

    Exceptions of the ``expected`` types are ordinary outcomes for the caller
    and are logged on one debug line instead of as errors.
    """

    def decorator(func):
        log = logger or debug_logger

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                log.start_func(func.__name__, _call_arguments(func, args, kwargs))
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except expected as exc:
                    log.debug(f"{func.__name__} raised {type(exc).__name__}: {exc}")
                    raise
                except Exception:
                    log.log_exception(f"Error in {func.__name__}")
                    raise
                log.end_func(func.__name__, execution_time=time.perf_counter() - started)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            log.start_func(func.__name__, _call_arguments(func, args, kwargs))
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except expected as exc:
                log.debug(f"{func.__name__} raised {type(exc).__name__}: {exc}")
                raise
            except Exception:
                log.log_exception(f"Error in {func.__name__}")
                raise
            log.end_func(func.__name__, result, time.perf_counter() - started)
            return result

        return wrapper

    return decorator


debug_logger = DebugLogger()
