"""
Main method for Portier. Start the web server.
"""

import os
from logging.config import dictConfig

from cheroot.server import HTTPServer
from cheroot.ssl.builtin import BuiltinSSLAdapter
from cheroot.wsgi import Server

from portier.flask_application import APP
from portier.logging import PortierLoggingWrapper

CERT_PATH = "/app/certs/tls.crt"
KEY_PATH = "/app/certs/tls.key"

if __name__ == "__main__":
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    dictConfig(
        {
            "version": 1,
            "formatters": {
                "json": {"class": "portier.logging.JsonLogFormatter"},
            },
            "handlers": {
                "wsgi": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json",
                },
            },
            "root": {"level": LOG_LEVEL, "handlers": ["wsgi"]},
        }
    )

    # the API server only talks to webhooks over TLS, plain HTTP is for local runs
    if os.path.exists(CERT_PATH):
        HTTPServer.ssl_adapter = BuiltinSSLAdapter(
            certificate=CERT_PATH, private_key=KEY_PATH
        )

    # wrap Portier with a layer that logs HTTP requests
    app = PortierLoggingWrapper(APP, LOG_LEVEL)

    # the host needs to be set to `0.0.0.0` so it can be reachable from outside the container
    server = Server(("0.0.0.0", 5000), app)  # nosec
    server.start()
