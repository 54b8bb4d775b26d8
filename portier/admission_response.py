from typing import Optional

import portier.constants as const
from portier.util import get_admission_review


class AdmissionResponse:
    """
    Decision for a single admission request.

    A denied object is never partially mutated, so `patch` is always empty
    if `allowed` is false.
    """

    uid: str
    allowed: bool
    patch: tuple
    reason: Optional[str]
    warnings: tuple

    def __init__(
        self,
        uid: str,
        allowed: bool,
        patch: list = None,
        reason: str = None,
        warnings: list = None,
    ):
        self.uid = uid
        self.allowed = bool(allowed)
        self.patch = tuple(patch or ()) if self.allowed else ()
        self.reason = reason
        self.warnings = tuple(warnings or ())

    def to_review(self, api_version: str = const.DEFAULT_ADMISSION_API_VERSION):
        return get_admission_review(
            self.uid,
            self.allowed,
            patch=[operation.to_dict() for operation in self.patch],
            msg=self.reason,
            warnings=self.warnings,
            api_version=api_version,
        )

    def __eq__(self, other):
        return isinstance(other, AdmissionResponse) and (
            self.uid,
            self.allowed,
            self.patch,
            self.reason,
            self.warnings,
        ) == (other.uid, other.allowed, other.patch, other.reason, other.warnings)

    def __repr__(self):
        return (
            f"AdmissionResponse(uid={self.uid!r}, allowed={self.allowed}, "
            f"patch={list(self.patch)}, reason={self.reason!r}, "
            f"warnings={list(self.warnings)})"
        )


def deny(uid: str, reason: str, warnings: list = None) -> AdmissionResponse:
    return AdmissionResponse(uid, False, reason=reason, warnings=warnings)

