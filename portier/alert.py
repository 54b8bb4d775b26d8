import json
import logging
import os
from datetime import datetime
from threading import Thread
from typing import Optional

import requests
from jinja2 import StrictUndefined, Template

from portier.exceptions import (
    AlertSendingError,
    ConfigurationError,
    InvalidConfigurationFormatError,
)
from portier.pipeline import PipelineRun, PipelineState
from portier.util import RES_DIR, safe_json_open, validate_schema
from portier.workload_object import WorkloadObject


class AlertingConfiguration:
    __DIR = "/app/config"
    __PATH = "/app/config/alertconfig.json"
    __SCHEMA_PATH = os.path.join(RES_DIR, "alertconfig_schema.json")

    ADMIT_CATEGORY_KEY = "admit_request"
    FAIL_IF_SEND_FAILS_KEY = "fail_if_alert_sending_fails"
    HEADER_KEY = "custom_headers"
    PAYLOAD_FIELDS_KEY = "payload_fields"
    PRIORITY_KEY = "priority"
    RECEIVER_KEY = "receivers"
    REJECT_CATEGORY_KEY = "reject_request"
    TEMPLATE_KEY = "template"
    URL_KEY = "receiver_url"

    config: dict

    def __init__(self):
        try:
            self.config = safe_json_open(self.__DIR, self.__PATH)
            validate_schema(
                self.config,
                self.__SCHEMA_PATH,
                "AlertingConfiguration",
                InvalidConfigurationFormatError,
            )
        except FileNotFoundError:
            logging.debug("No alerting configuration file found.")
            self.config = {}
        except InvalidConfigurationFormatError as err:
            raise ConfigurationError(err.message) from err
        except Exception as err:
            raise ConfigurationError(
                "An error occurred while loading the AlertingConfiguration file: "
                f"{str(err)}"
            ) from err

    def alerting_required(self, event_category: str) -> bool:
        return bool(self.config.get(event_category))

    def receivers(self, event_category: str) -> list:
        return (self.config.get(event_category) or {}).get(self.RECEIVER_KEY, [])


class Alert:
    """
    An alert about an admission decision, rendered from a JSON payload
    template and sent to a single receiver.
    Sending can, depending on the configuration, raise an AlertSendingError,
    causing the webhook to answer with status code 500.
    """

    template: str
    receiver_url: str
    payload: str
    headers: dict

    context: dict
    throw_if_alert_sending_fails: bool

    __TEMPLATE_PATH = os.path.join(RES_DIR, "templates")

    def __init__(self, alert_message: str, receiver_config: dict, run: PipelineRun):
        admission_request = run.request if run else None
        if admission_request is None:
            namespace = kind = object_name = "Invalid admission request."
            images = "Invalid admission request."
            request_id = "Invalid admission request."
        else:
            namespace = admission_request.namespace
            kind = admission_request.kind
            object_name = admission_request.name
            request_id = admission_request.uid
            images = str(
                [
                    str(image)
                    for image in WorkloadObject(admission_request.object).images.values()
                ]
            )

        self.context = {
            "alert_message": alert_message,
            "priority": str(receiver_config.get(AlertingConfiguration.PRIORITY_KEY, 3)),
            "portier_pod_id": os.getenv("POD_NAME"),
            "cluster": os.getenv("CLUSTER_NAME"),
            "namespace": namespace,
            "kind": kind,
            "object_name": object_name,
            "timestamp": datetime.now(),
            "request_id": request_id or "No given UID",
            "images": images,
        }
        self.receiver_url = receiver_config[AlertingConfiguration.URL_KEY]
        self.template = receiver_config[AlertingConfiguration.TEMPLATE_KEY]
        self.throw_if_alert_sending_fails = receiver_config.get(
            AlertingConfiguration.FAIL_IF_SEND_FAILS_KEY, False
        )
        self.payload = self.__construct_payload(receiver_config)
        self.headers = self.__get_headers(receiver_config)

    def __construct_payload(self, receiver_config: dict) -> str:
        template_file = f"{self.__TEMPLATE_PATH}/{self.template}.json"
        try:
            template = safe_json_open(self.__TEMPLATE_PATH, template_file)
        except FileNotFoundError as err:
            raise ConfigurationError(
                f"Unable to find template file {self.template}."
            ) from err
        except Exception as err:
            raise ConfigurationError(
                f"Error loading template file {self.template}: {str(err)}"
            ) from err

        payload = _render(template, self.context)
        payload.update(
            receiver_config.get(AlertingConfiguration.PAYLOAD_FIELDS_KEY) or {}
        )
        return json.dumps(payload)

    def send_alert(self) -> Optional[requests.Response]:
        """
        Post the payload to the receiver. A failure only raises an
        `AlertSendingError` if the receiver demands successful sending.
        """
        response = None
        try:
            response = requests.post(
                self.receiver_url, data=self.payload, headers=self.headers, timeout=30
            )
            response.raise_for_status()
        except requests.RequestException as err:
            logging.error(
                "sending %s alert for request %s failed: %s",
                self.template,
                self.context["request_id"],
                err,
            )
            if self.throw_if_alert_sending_fails:
                raise AlertSendingError(str(err)) from err
            return response
        logging.info(
            "sent %s alert for request %s", self.template, self.context["request_id"]
        )
        return response

    @staticmethod
    def __get_headers(receiver_config: dict) -> dict:
        # entries look like "Name: value", the value may contain colons itself
        custom = (
            header.split(":", 1)
            for header in receiver_config.get(AlertingConfiguration.HEADER_KEY) or []
        )
        return {
            "Content-Type": "application/json",
            **{key.strip(): value.strip() for key, value in custom},
        }


def _render(node, context: dict):
    """
    Render every string of a JSON template with Jinja2, keeping its structure.
    """
    if isinstance(node, dict):
        return {key: _render(value, context) for key, value in node.items()}
    if isinstance(node, list):
        return [_render(entry, context) for entry in node]
    if isinstance(node, str):
        return Template(node).render(context, undefined=StrictUndefined)
    return node


def dispatch_alerts(run: PipelineRun) -> None:
    """
    Send out alerts for a finished admission.
    If alerts must succeed for the admission to be allowed, do it synchronously,
    otherwise send them from a different thread to return the webhook response
    sooner.
    """
    al_config = AlertingConfiguration()
    admit_event = run.state == PipelineState.ALLOWED
    if not al_config.alerting_required(_category(admit_event)):
        return

    reason = run.response.reason if run.response else None
    if must_alerting_succeed(admit_event, al_config):
        send_alerts(run, admit_event, reason, al_config)
    else:
        alert_thread = Thread(
            target=send_alerts, args=[run, admit_event, reason, al_config], daemon=True
        )
        alert_thread.start()


def send_alerts(
    run: PipelineRun,
    admit_event: bool,
    reason: str = None,
    al_config: AlertingConfiguration = None,
) -> None:
    al_config = al_config or AlertingConfiguration()
    for receiver in al_config.receivers(_category(admit_event)):
        message = (
            "PORTIER admitted a request."
            if admit_event
            else f"PORTIER rejected a request: {reason}"
        )
        Alert(message, receiver, run).send_alert()


def must_alerting_succeed(
    admit_event: bool, al_config: AlertingConfiguration = None
) -> bool:
    # if the request is rejected anyways, failing to send alerts won't change the outcome
    if not admit_event:
        return False
    al_config = al_config or AlertingConfiguration()
    return any(
        receiver.get(AlertingConfiguration.FAIL_IF_SEND_FAILS_KEY, False)
        for receiver in al_config.receivers(AlertingConfiguration.ADMIT_CATEGORY_KEY)
    )


def _category(admit_event: bool) -> str:
    if admit_event:
        return AlertingConfiguration.ADMIT_CATEGORY_KEY
    return AlertingConfiguration.REJECT_CATEGORY_KEY
