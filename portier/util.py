import base64
import json
import os
from typing import Optional

from jsonschema import FormatChecker, validate, ValidationError

import portier.constants as const
from portier.exceptions import PathTraversalError

RES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "res")


def safe_path_func(callback: callable, base_dir: str, path: str, *args, **kwargs):
    if os.path.commonprefix((os.path.realpath(path), base_dir)) != base_dir:
        msg = "Potential path traversal in {path}."
        raise PathTraversalError(message=msg, path=path)
    return callback(path, *args, **kwargs)


def safe_json_open(base_dir: str, path: str):
    with safe_path_func(open, base_dir, path, "r") as file:
        return json.load(file)


def feature_flag_on(flag: str) -> bool:
    return os.environ.get(flag, "0").lower() in ("1", "true", "yes")


def get_admission_review(
    uid: str,
    allowed: bool,
    patch: Optional[list] = None,
    msg: Optional[str] = None,
    warnings: Optional[list] = None,
    api_version: str = const.DEFAULT_ADMISSION_API_VERSION,
):
    """
    Get a standardized response object with patching instructions for the
    request and error message.

    Parameters
    ----------
    uid : str
        The uid of the request that was sent to the webhook. Echoed as is.
    allowed : bool
        The decision, whether the request will be accepted or denied.
    patch : list (optional)
        A list with JSON patch instructions, that will modify the object
        of the request. The list is Base64 encoded. Ignored if the request
        is denied.
    msg : str (optional)
        The reason for the decision, displayed to the user on denial.
    warnings : list (optional)
        Warnings returned to the requesting client.
    api_version : str (optional)
        The AdmissionReview API version the request was sent with.

    Return
    ----------
    AdmissionReview : dict
        Response is an AdmissionReview with following structure:

        {
          "apiVersion": "admission.k8s.io/v1",
          "kind": "AdmissionReview",
          "response": {
            "uid": uid,
            "allowed": allowed,
            "status": {
                "code": 202,
                "message": "..."
            },
            "warnings": ["rule labels skipped: ..."],
            "patchType": "JSONPatch",
            "patch":
                "W3sib3AiOiAiYWRkIiwgInBhdGgiOiAiL3NwZWMvcmVwbGljYXMiLCAidmFsdWUiOiAzfV0="
          }
        }
    """
    review = {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "response": {
            "uid": uid,
            "allowed": allowed,
            "status": {"code": 202 if allowed else 403},
        },
    }

    if msg:
        review["response"]["status"]["message"] = msg

    if warnings:
        review["response"]["warnings"] = list(warnings)

    if patch and allowed:
        review["response"]["patchType"] = "JSONPatch"
        review["response"]["patch"] = base64.b64encode(
            bytearray(json.dumps(patch), "utf-8")
        ).decode("utf-8")

    return review


def validate_schema(data: dict, schema_path: str, kind: str, exception):
    with open(schema_path, "r", encoding="utf-8") as schema_file:
        schema = json.load(schema_file)

    try:
        validate(instance=data, schema=schema, format_checker=FormatChecker())
    except ValidationError as err:
        msg = "{validation_kind} has an invalid format: {validation_err}."
        raise exception(
            message=msg,
            validation_kind=kind,
            validation_err=err.message,
        ) from err
