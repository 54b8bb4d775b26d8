import asyncio
import logging

import aiohttp
from flask import Flask, jsonify, request
from prometheus_flask_exporter import NO_PREFIX, PrometheusMetrics

import portier.constants as const
from portier.alert import dispatch_alerts
from portier.config import Config
from portier.exceptions import AlertSendingError, ConfigurationError

APP = Flask(__name__)
"""
Flask application that receives the AdmissionReviews sent by the k8s API
server, runs them through the decision pipeline and sends back its response.
"""
CONFIG = Config()
PIPELINE = CONFIG.build_pipeline()

metrics = PrometheusMetrics(
    APP,
    defaults_prefix=NO_PREFIX,
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 10.0, 15.0, 20, 30.0, float("inf")),
)
"""
Provides metrics for the Flask application
"""


def metrics_label(response, label):
    json_response = response.get_json(silent=True)
    if json_response:
        if label == "allowed":
            return json_response["response"]["allowed"]
        elif label == "status_code":
            return json_response["response"]["status"]["code"]
        elif label == "warnings":
            return "warnings" in json_response["response"]
    return json_response


def review_labels():
    return {
        "allowed": lambda r: metrics_label(r, "allowed"),
        "status_code": lambda r: metrics_label(r, "status_code"),
        "warnings": lambda r: metrics_label(r, "warnings"),
    }


@APP.errorhandler(AlertSendingError)
def handle_alert_sending_failure(err):
    logging.error(err.message)
    return "Alert could not be sent. Check the logs for more details!", 500


@APP.errorhandler(ConfigurationError)
def handle_alert_config_error(err):
    logging.error(err.message)
    return (
        "Alerting configuration is not valid. Check the logs for more details!",
        500,
    )


@APP.route("/mutate", methods=["POST"])
@metrics.counter(
    "mutate_requests_total", "Total number of mutate requests", labels=review_labels()
)
def mutate():
    """
    Handle the '/mutate' path. Run only the mutating rules and send back a
    response, which either allows the request (possibly with a patch) or
    denies it.
    """
    return __review(mutate=True, validate=False)


@APP.route("/validate", methods=["POST"])
@metrics.counter(
    "validate_requests_total",
    "Total number of validate requests",
    labels=review_labels(),
)
def validate():
    """
    Handle the '/validate' path. Run only the validating rules against the
    object as it was submitted. The response never carries a patch.
    """
    return __review(mutate=False, validate=True)


@APP.route("/admit", methods=["POST"])
@metrics.counter(
    "admit_requests_total", "Total number of admit requests", labels=review_labels()
)
def admit():
    """
    Handle the '/admit' path. Run the mutating rules, then the validating
    rules against the patched object.
    """
    return __review(mutate=True, validate=True)


# health probe
@APP.route("/health", methods=["GET", "POST"])
@metrics.do_not_track()
def healthz():
    """
    Handle the '/health' endpoint and check the health status of the web server.
    Send back '200' status code.
    """

    return "", 200


# readiness probe
@APP.route("/ready", methods=["GET", "POST"])
@metrics.do_not_track()
def readyz():
    return "", 200


def __review(mutate: bool, validate: bool):
    payload = request.get_json(force=True, silent=True)
    if payload is None:
        logging.error("received a request body that isn't JSON.")
        return "request body is not valid JSON", 400, {"Content-Type": "text/plain"}

    logging.debug(payload)
    run = asyncio.run(__async_review(payload, mutate, validate))
    # depending on whether alerting must succeed, runs synchronously or in the background
    dispatch_alerts(run)
    return jsonify(run.review)


async def __async_review(payload: dict, mutate: bool, validate: bool):
    # the API server gives up on the webhook after 30s at most, so outgoing
    # requests time out slightly earlier
    timeout = aiohttp.ClientTimeout(total=const.AIO_TIMEOUT_SECONDS)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        return await PIPELINE.run(
            payload, mutate=mutate, validate=validate, session=session
        )
