import logging

from portier.exceptions import InvalidPatchError, RuleExecutionError
from portier.patch import WorkingCopy


class MutationResult:
    patch: list
    warnings: list

    def __init__(self, patch: list, warnings: list):
        self.patch = patch
        self.warnings = warnings


class ValidationResult:
    allowed: bool
    reason: str
    warnings: list

    def __init__(self, allowed: bool, reason: str, warnings: list):
        self.allowed = allowed
        self.reason = reason
        self.warnings = warnings


class RuleEngine:
    """
    Runs the two rule chains, in registration order, one rule after the
    other. The chains are fixed at construction and never change afterwards,
    so a single engine serves any number of concurrent requests.
    """

    mutators: tuple
    validators: tuple

    def __init__(self, mutators, validators, wrapper):
        self.mutators = tuple(mutators)
        self.validators = tuple(validators)
        self.wrapper = wrapper

    @staticmethod
    def applicable(chain: tuple, admission_request) -> list:
        return [
            rule
            for rule in chain
            if rule.applies_to(admission_request)
            and not rule.excludes(admission_request.namespace)
        ]

    async def run_mutators(self, admission_request, **kwargs) -> MutationResult:
        """
        Run all applicable mutators. Each one sees the object with the patches
        of all mutators before it applied. The resulting patch is the
        concatenation of all their operations.

        Raise `PatchConflictError` if two mutators disagree on a path.
        """
        working_copy = WorkingCopy(admission_request.object)
        patch, warnings = [], []

        for rule in self.applicable(self.mutators, admission_request):
            current = admission_request.with_object(working_copy.tree)
            operations, rule_warnings = await self.wrapper.invoke_mutator(
                rule, current, **kwargs
            )
            warnings.extend(rule_warnings)
            try:
                working_copy.apply(rule.name, operations)
            except InvalidPatchError as err:
                failure = RuleExecutionError(message="{error}", error=err.message)
                warnings.append(self.wrapper.handle_failure(rule, failure, current))
                continue
            if operations:
                logging.debug(
                    'rule "%s" emitted %d patch operation(s).',
                    rule.name,
                    len(operations),
                    extra=dict(admission_request.context, rule=rule.name),
                )
            patch.extend(operations)

        return MutationResult(patch, warnings)

    async def run_validators(self, admission_request, **kwargs) -> ValidationResult:
        """
        Run all applicable validators, even after one of them denied, so the
        response can report every violation. The first denial's reason is the
        reason of the result, all later ones become warnings.
        """
        allowed, reason, warnings = True, None, []

        for rule in self.applicable(self.validators, admission_request):
            verdict, rule_warnings = await self.wrapper.invoke_validator(
                rule, admission_request, **kwargs
            )
            warnings.extend(rule_warnings)
            warnings.extend(verdict.warnings)
            if verdict.allowed:
                continue

            message = verdict.reason or f"denied by rule {rule.name}"
            logging.info(
                'rule "%s" denied the request: %s',
                rule.name,
                message,
                extra=dict(admission_request.context, rule=rule.name),
            )
            if allowed:
                allowed, reason = False, message
            else:
                warnings.append(message)

        return ValidationResult(allowed, reason, warnings)
