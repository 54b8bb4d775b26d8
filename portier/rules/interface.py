import portier.constants as const
from portier.exceptions import InvalidConfigurationFormatError
from portier.selector import Selector

MUTATOR = "mutator"
VALIDATOR = "validator"


class Verdict:
    """
    Outcome of a validating rule.
    """

    __slots__ = ("allowed", "reason", "warnings")

    def __init__(self, allowed: bool, reason: str = None, warnings: list = None):
        self.allowed = bool(allowed)
        self.reason = reason
        self.warnings = tuple(warnings or ())

    def __eq__(self, other):
        return isinstance(other, Verdict) and (
            self.allowed,
            self.reason,
            self.warnings,
        ) == (other.allowed, other.reason, other.warnings)

    def __repr__(self):
        return f"Verdict(allowed={self.allowed}, reason={self.reason!r}, warnings={list(self.warnings)})"


class RuleInterface:
    """
    A single admission rule. Rules are created once from the configuration and
    shared read-only between all requests, so they must not keep any state
    between invocations.
    """

    kind: str = None

    def __init__(
        self,
        name: str,
        match: dict = None,
        failure_policy: str = const.FAIL,
        timeout_seconds: float = const.DEFAULT_RULE_TIMEOUT_SECONDS,
        namespace_exclusions: list = None,
        **kwargs,
    ):  # pylint: disable=unused-argument
        if failure_policy not in const.FAILURE_POLICIES:
            raise InvalidConfigurationFormatError(
                message="{failure_policy} is not a valid failure policy of rule {rule_name}.",
                failure_policy=failure_policy,
                rule_name=name,
            )
        if not 0 < timeout_seconds <= const.MAX_RULE_TIMEOUT_SECONDS:
            raise InvalidConfigurationFormatError(
                message="Timeout of rule {rule_name} must be within (0, {maximum}] seconds.",
                rule_name=name,
                maximum=const.MAX_RULE_TIMEOUT_SECONDS,
            )
        self.name = name
        self.selector = Selector(**(match or {}))
        self.failure_policy = failure_policy
        self.timeout = float(timeout_seconds)
        self.namespace_exclusions = frozenset(namespace_exclusions or ())

    def applies_to(self, admission_request) -> bool:
        return self.selector.matches(admission_request)

    def excludes(self, namespace: str) -> bool:
        return namespace in self.namespace_exclusions

    async def mutate(self, admission_request, **kwargs) -> list:
        """
        Inspect the admission request and return the patch operations to
        apply to its object, an empty list if there is nothing to do.
        """
        raise NotImplementedError

    async def validate(self, admission_request, **kwargs) -> Verdict:
        """
        Inspect the admission request and return a verdict on it.
        """
        raise NotImplementedError

    def __str__(self):
        return self.name


class MutatorInterface(RuleInterface):
    kind = MUTATOR


class ValidatorInterface(RuleInterface):
    kind = VALIDATOR
