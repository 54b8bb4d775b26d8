import enum
import logging
import traceback

import portier.constants as const
from portier.admission_request import AdmissionRequest
from portier.admission_response import AdmissionResponse, deny
from portier.exceptions import (
    AdmissionDenied,
    MalformedRequestError,
    PatchConflictError,
)
from portier.patch import apply_patch


class PipelineState(enum.Enum):
    RECEIVED = "received"
    MUTATING = "mutating"
    REVALIDATING_SHAPE = "revalidating_shape"
    VALIDATING = "validating"
    DECIDED = "decided"
    ALLOWED = "allowed"
    DENIED = "denied"
    ERRORED = "errored"


class PipelineRun:
    """
    State of the admission of a single AdmissionReview.
    """

    state: PipelineState
    request: AdmissionRequest
    response: AdmissionResponse

    def __init__(self, payload):
        self.payload = payload
        self.state = PipelineState.RECEIVED
        self.request = None
        self.response = None
        self.warnings = []
        self.api_version = _api_version(payload)

    @property
    def context(self) -> dict:
        return dict(self.request.context) if self.request else {}

    @property
    def review(self) -> dict:
        return self.response.to_review(self.api_version)

    def transition(self, state: PipelineState):
        logging.debug(
            "admission %s -> %s", self.state.value, state.value, extra=self.context
        )
        self.state = state

    def decide(self, response: AdmissionResponse, state: PipelineState):
        if self.response is not None:
            raise RuntimeError(f"admission of {response.uid} was already decided.")
        self.transition(PipelineState.DECIDED)
        self.response = response
        self.transition(state)


class DecisionPipeline:
    """
    Entry point of the admission webhook: parse the review, run the mutating
    chain, re-shape the object with the resulting patch, run the validating
    chain and build exactly one response.

    With `detection_mode`, denials are only reported as warnings and the
    request is admitted (unpatched).
    """

    def __init__(self, engine, detection_mode: bool = False):
        self.engine = engine
        self.detection_mode = detection_mode

    async def admit(
        self, payload, mutate: bool = True, validate: bool = True, **kwargs
    ) -> AdmissionResponse:
        run = await self.run(payload, mutate=mutate, validate=validate, **kwargs)
        return run.response

    async def run(
        self, payload, mutate: bool = True, validate: bool = True, **kwargs
    ) -> PipelineRun:
        """
        Admit the AdmissionReview `payload`, running the mutating and/or the
        validating phase. Keyword arguments are passed on to every rule.

        Never raises, apart from cancellation: all failures are turned into a
        denying response.
        """
        run = PipelineRun(payload)
        try:
            run.request = AdmissionRequest(payload)
        except MalformedRequestError as err:
            logging.error(str(err))
            run.decide(
                deny(_uid(payload), const.MALFORMED_REQUEST_MSG, [err.message]),
                PipelineState.ERRORED,
            )
            return run

        try:
            await self.__admit(run, mutate, validate, **kwargs)
        except (AdmissionDenied, PatchConflictError) as err:
            err.update_context(**run.context)
            logging.warning(str(err), extra=run.context)
            self.__deny(run, err.message)
        except Exception:  # pylint: disable=broad-except
            logging.error(traceback.format_exc())
            run.decide(
                deny(run.request.uid, const.UNKNOWN_ERROR_MSG), PipelineState.ERRORED
            )
        return run

    async def __admit(self, run: PipelineRun, mutate: bool, validate: bool, **kwargs):
        admission_request = run.request
        tree = admission_request.object
        patch = []

        if mutate:
            run.transition(PipelineState.MUTATING)
            mutation = await self.engine.run_mutators(admission_request, **kwargs)
            run.warnings.extend(mutation.warnings)
            patch = mutation.patch

            # validators get to see the object as it will be stored
            run.transition(PipelineState.REVALIDATING_SHAPE)
            tree = apply_patch(tree, patch)

        if validate:
            run.transition(PipelineState.VALIDATING)
            validation = await self.engine.run_validators(
                admission_request.with_object(tree), **kwargs
            )
            run.warnings.extend(validation.warnings)
            if not validation.allowed:
                self.__deny(run, validation.reason)
                return

        logging.info(
            "admitted %s %s with %d patch operation(s).",
            admission_request.kind,
            admission_request.name,
            len(patch),
            extra=run.context,
        )
        run.decide(
            AdmissionResponse(
                admission_request.uid, True, patch=patch, warnings=run.warnings
            ),
            PipelineState.ALLOWED,
        )

    def __deny(self, run: PipelineRun, reason: str):
        if self.detection_mode:
            logging.warning(
                "request would have been denied: %s", reason, extra=run.context
            )
            response = AdmissionResponse(
                run.request.uid,
                True,
                warnings=[*run.warnings, reason + const.DETECTION_MODE_SUFFIX],
            )
        else:
            response = deny(run.request.uid, reason, run.warnings)
        run.decide(response, PipelineState.DENIED)


def _uid(payload) -> str:
    request = payload.get("request") if isinstance(payload, dict) else None
    uid = request.get("uid") if isinstance(request, dict) else None
    return uid if isinstance(uid, str) else ""


def _api_version(payload) -> str:
    api_version = payload.get("apiVersion") if isinstance(payload, dict) else None
    if api_version in const.SUPPORTED_ADMISSION_API_VERSIONS:
        return api_version
    return const.DEFAULT_ADMISSION_API_VERSION
