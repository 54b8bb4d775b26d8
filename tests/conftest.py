import asyncio
import copy
import json
import os
from contextlib import contextmanager

import pytest

import portier.alert
import portier.util
from portier.admission_request import AdmissionRequest
from portier.engine import RuleEngine
from portier.patch import PatchDraft
from portier.pipeline import DecisionPipeline
from portier.reliability import ReliabilityWrapper
from portier.rules.interface import MutatorInterface, ValidatorInterface, Verdict

"""
This file is used for sharing fixtures across all other test files.
https://docs.pytest.org/en/stable/fixture.html#scope-sharing-fixtures-across-classes-modules-packages-or-session
"""

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")


@contextmanager
def no_exc():
    yield


def get_json(path):
    with open(path, "r") as file:
        return json.load(file)


def get_admreq(adm_type):
    try:
        return get_json(
            os.path.join(
                DATA_DIR, "sample_admission_requests", f"ad_request_{adm_type}.json"
            )
        )
    except FileNotFoundError:
        return None


def review(
    obj,
    operation="CREATE",
    namespace="default",
    uid="abc",
    old_obj=None,
    api_version="admission.k8s.io/v1",
):
    request = {
        "uid": uid,
        "operation": operation,
        "namespace": namespace,
        "object": copy.deepcopy(obj),
    }
    if old_obj is not None:
        request["oldObject"] = copy.deepcopy(old_obj)
    return {"apiVersion": api_version, "kind": "AdmissionReview", "request": request}


def pod(name="my-app", containers=None, labels=None):
    metadata = {"name": name}
    if labels is not None:
        metadata["labels"] = labels
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": metadata,
        "spec": {
            "containers": containers
            if containers is not None
            else [{"name": "app", "image": "nginx"}]
        },
    }


def build_pipeline(mutators=(), validators=(), home_namespace="portier", **kwargs):
    engine = RuleEngine(mutators, validators, ReliabilityWrapper(home_namespace))
    return DecisionPipeline(engine, **kwargs)


class SetMutator(MutatorInterface):
    """
    Sets a single value, for tests.
    """

    def __init__(self, name, path, value=None, remove=False, **kwargs):
        super().__init__(name, **kwargs)
        self.path = path
        self.value = value
        self.remove = remove
        self.calls = 0

    async def mutate(self, admission_request, **kwargs):
        self.calls += 1
        draft = PatchDraft(admission_request.object)
        if self.remove:
            draft.remove(self.path)
        else:
            draft.set(self.path, self.value)
        return draft.operations


class SleepingMutator(MutatorInterface):
    def __init__(self, name, sleep=0.05, **kwargs):
        super().__init__(name, **kwargs)
        self.sleep = sleep

    async def mutate(self, admission_request, **kwargs):
        await asyncio.sleep(self.sleep)
        return []


class RawMutator(MutatorInterface):
    """
    Returns whatever it was given, for tests of malformed rule output.
    """

    def __init__(self, name, result, **kwargs):
        super().__init__(name, **kwargs)
        self.result = result

    async def mutate(self, admission_request, **kwargs):
        return self.result


class SleepingValidator(ValidatorInterface):
    def __init__(self, name, sleep=0.05, **kwargs):
        super().__init__(name, **kwargs)
        self.sleep = sleep

    async def validate(self, admission_request, **kwargs):
        await asyncio.sleep(self.sleep)
        return Verdict(True)


class CrashingValidator(ValidatorInterface):
    def __init__(self, name, error=None, **kwargs):
        super().__init__(name, **kwargs)
        self.error = error or ValueError("boom")

    async def validate(self, admission_request, **kwargs):
        raise self.error


class RecordingValidator(ValidatorInterface):
    """
    Remembers the objects it was shown.
    """

    def __init__(self, name, verdict=None, **kwargs):
        super().__init__(name, **kwargs)
        self.verdict = verdict or Verdict(True)
        self.seen = []
        self.kwargs = []

    async def validate(self, admission_request, **kwargs):
        self.seen.append(admission_request.object)
        self.kwargs.append(kwargs)
        return self.verdict


@pytest.fixture
def pod_request():
    return AdmissionRequest(get_admreq("pods"))


@pytest.fixture
def deployment_request():
    return AdmissionRequest(get_admreq("deployments"))


@pytest.fixture
def cronjob_request():
    return AdmissionRequest(get_admreq("cronjob"))


@pytest.fixture
def home_request():
    return AdmissionRequest(get_admreq("home_namespace"))


@pytest.fixture
def wrapper():
    return ReliabilityWrapper("portier")


@pytest.fixture()
def m_safe_path_func(monkeypatch):
    side_effect = lambda callback, base_dir, path, *args, **kwargs: callback(
        path, *args, **kwargs
    )
    monkeypatch.setattr(portier.util, "safe_path_func", side_effect)


@pytest.fixture
def m_alerting(monkeypatch, m_safe_path_func):
    monkeypatch.setenv("POD_NAME", "portier-pod-123")
    monkeypatch.setenv("CLUSTER_NAME", "minikube")
    monkeypatch.setattr(
        portier.alert.AlertingConfiguration,
        "_AlertingConfiguration__PATH",
        os.path.join(DATA_DIR, "alerting", "alertconfig.json"),
    )
    monkeypatch.setattr(
        portier.alert.Alert,
        "_Alert__TEMPLATE_PATH",
        os.path.join(DATA_DIR, "alerting", "templates"),
    )


@pytest.fixture
def m_alerting_without_send(m_alerting, monkeypatch, mocker):
    monkeypatch.setattr(
        portier.alert.Alert, "send_alert", mocker.stub("alert.Alert.send_alert")
    )


@pytest.fixture
def m_no_alerting(monkeypatch, m_safe_path_func):
    monkeypatch.setattr(
        portier.alert.AlertingConfiguration,
        "_AlertingConfiguration__PATH",
        os.path.join(DATA_DIR, "alerting", "missing.json"),
    )
