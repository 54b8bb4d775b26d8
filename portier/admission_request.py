import copy
import os

import portier.constants as const
from portier.exceptions import MalformedRequestError
from portier.util import RES_DIR, validate_schema


class AdmissionRequest:
    """
    Read-only view of the `request` part of an AdmissionReview.

    `object` and `old_object` are schemaless trees of plain JSON types and are
    handed out as copies, so whoever inspects a request can never alter it.
    """

    __SCHEMA_PATH = os.path.join(RES_DIR, "ad_request_schema.json")

    def __init__(self, ad_review: dict):
        validate_schema(
            ad_review, self.__SCHEMA_PATH, "AdmissionRequest", MalformedRequestError
        )

        request = ad_review["request"]
        self._api_version = ad_review.get(
            "apiVersion", const.DEFAULT_ADMISSION_API_VERSION
        )
        self._uid = request["uid"]
        self._operation = request["operation"]
        self._namespace = request.get("namespace", "")
        self._user = request.get("userInfo", {}).get("username")
        self._dry_run = request.get("dryRun", False)
        self._old_object = copy.deepcopy(request.get("oldObject"))
        # the API server sends `object: null` on DELETE, rules then see the
        # object that is about to be deleted
        self._object = copy.deepcopy(request["object"] or self._old_object)

        group, version = _split_api_version(str(self._object.get("apiVersion") or ""))
        gvk = request.get("kind") or {"kind": self._object.get("kind", "")}
        self._kind = gvk["kind"]
        self._group = gvk.get("group", group)
        self._version = gvk.get("version", version)

        metadata = self._object.get("metadata") or {}
        self._name = (
            request.get("name")
            or metadata.get("name")
            or metadata.get("generateName")
            or ""
        )

    @property
    def api_version(self) -> str:
        return self._api_version

    @property
    def uid(self) -> str:
        return self._uid

    @property
    def operation(self) -> str:
        return self._operation

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def group(self) -> str:
        return self._group

    @property
    def version(self) -> str:
        return self._version

    @property
    def name(self) -> str:
        return self._name

    @property
    def user(self):
        return self._user

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def object(self) -> dict:
        return copy.deepcopy(self._object)

    @property
    def old_object(self):
        return copy.deepcopy(self._old_object)

    def with_object(self, tree: dict):
        """
        Return a copy of this request whose `object` is replaced by `tree`.
        """
        clone = copy.copy(self)
        clone._object = copy.deepcopy(tree)
        return clone

    @property
    def context(self):
        return {
            "uid": self.uid,
            "user": self.user,
            "operation": self.operation,
            "kind": self.kind,
            "object_name": self.name,
            "namespace": self.namespace,
            "dry_run": self.dry_run,
        }


def _split_api_version(api_version: str):
    # core resources carry a bare version, e.g. `v1`, all others `group/version`
    group, _, version = api_version.rpartition("/")
    return group, version
