import logging
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

PROBE_PATHS = ("/health", "/ready")


class PortierLoggingWrapper:
    """
    Logging wrapper for a WSGI application that logs all HTTP requests
    """

    def __init__(self, app, log_level):
        # no handler of its own, records propagate to the root logger
        self.logger = logging.getLogger("wsgi")
        self.logger.setLevel(log_level)
        self.app = app

    def __call__(self, environ, start_response):
        status_codes = []

        # may be called more than once per request, the last status wins
        def custom_start_response(status, response_headers, exc_info=None):
            status_codes.append(status.partition(" ")[0])
            return start_response(status, response_headers, exc_info)

        # the app may change environ, so log only after calling it
        result = self.app(environ, custom_start_response)

        extra_logs = {
            "client_ip": environ.get("REMOTE_ADDR", ""),
            "method": environ.get("REQUEST_METHOD", ""),
            "path": environ.get("PATH_INFO", ""),
            "query": environ.get("QUERY_STRING", ""),
            "protocol": environ.get("SERVER_PROTOCOL", ""),
            "status_code": status_codes[-1] if status_codes else "",
        }

        if environ.get("PATH_INFO") in PROBE_PATHS:
            self.logger.debug("request log", extra=extra_logs)
        else:
            self.logger.info("request log", extra=extra_logs)
        return result


class JsonLogFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record:
            log_record["timestamp"] = str(datetime.now(timezone.utc))

        if log_record.get("message") == "request log":
            del log_record["message"]
