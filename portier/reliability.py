import asyncio
import logging

import portier.constants as const
from portier.exceptions import (
    AdmissionDenied,
    InvalidPatchError,
    RuleExecutionError,
    RuleFailure,
    RuleTimeoutError,
)
from portier.patch import PatchOperation
from portier.rules.interface import Verdict


class ReliabilityWrapper:
    """
    Guards every single rule invocation.

    - requests to the `home_namespace`, the namespace the webhook itself runs
      in, never reach a rule body, so the webhook can't block its own workload
    - a rule body gets at most its `timeout` seconds
    - a failed or timed out rule either denies the whole request (`Fail`) or
      is skipped with a warning (`Ignore`)
    """

    home_namespace: str

    def __init__(self, home_namespace: str):
        self.home_namespace = home_namespace

    def skips(self, admission_request) -> bool:
        return admission_request.namespace == self.home_namespace

    async def invoke_mutator(self, rule, admission_request, **kwargs):
        """
        Run the mutating `rule` and return its patch operations together with
        the warnings that came up.
        """
        if self.skips(admission_request):
            return [], []
        try:
            result = await self.__call(rule, rule.mutate, admission_request, **kwargs)
            return self.__operations(result), []
        except RuleFailure as err:
            return [], [self.handle_failure(rule, err, admission_request)]

    async def invoke_validator(self, rule, admission_request, **kwargs):
        """
        Run the validating `rule` and return its verdict together with the
        warnings that came up.
        """
        if self.skips(admission_request):
            return Verdict(True), []
        try:
            verdict = await self.__call(
                rule, rule.validate, admission_request, **kwargs
            )
            if not isinstance(verdict, Verdict):
                raise RuleExecutionError(
                    message="returned {result_type} instead of a verdict",
                    result_type=type(verdict).__name__,
                )
            return verdict, []
        except RuleFailure as err:
            return Verdict(True), [self.handle_failure(rule, err, admission_request)]

    def handle_failure(self, rule, err: RuleFailure, admission_request=None) -> str:
        """
        Apply the failure policy of `rule`. Return the warning for an ignored
        failure, raise `AdmissionDenied` otherwise.
        """
        context = dict(admission_request.context) if admission_request else {}
        context.update(rule=rule.name, failure_policy=rule.failure_policy)
        err.update_context(**context)

        if rule.failure_policy == const.IGNORE:
            logging.warning(
                'rule "%s" failed, ignoring it: %s', rule.name, err.message, extra=context
            )
            return f"rule {rule.name} skipped: {err.message}"

        logging.error('rule "%s" failed: %s', rule.name, err.message, extra=context)
        raise AdmissionDenied(
            message="rule {rule_name} failed: {cause}",
            rule_name=rule.name,
            cause=err.message,
            **(admission_request.context if admission_request else {}),
        ) from err

    @staticmethod
    async def __call(rule, body, admission_request, **kwargs):
        async def guarded():
            # a timeout raised by the rule itself (e.g. by its HTTP client) is
            # a crash of the rule, not the rule running out of time
            try:
                return await body(admission_request, **kwargs)
            except asyncio.TimeoutError as err:
                raise RuleExecutionError(
                    message="{error}", error=str(err) or type(err).__name__
                ) from err

        try:
            return await asyncio.wait_for(guarded(), timeout=rule.timeout)
        except asyncio.TimeoutError as err:
            raise RuleTimeoutError(
                message="timed out after {timeout}s", timeout=rule.timeout
            ) from err
        except RuleFailure:
            raise
        except Exception as err:
            raise RuleExecutionError(
                message="{error}", error=str(err) or type(err).__name__
            ) from err

    @staticmethod
    def __operations(result) -> list:
        if result is None:
            return []
        if not isinstance(result, (list, tuple)):
            result = [result]
        operations = []
        for operation in result:
            try:
                if isinstance(operation, dict):
                    operation = PatchOperation.from_dict(operation)
            except InvalidPatchError as err:
                raise RuleExecutionError(message="{error}", error=err.message) from err
            if not isinstance(operation, PatchOperation):
                raise RuleExecutionError(
                    message="returned {result_type} instead of patch operations",
                    result_type=type(operation).__name__,
                )
            operations.append(operation)
        return operations
