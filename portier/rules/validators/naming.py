import re

from portier.exceptions import InvalidConfigurationFormatError
from portier.rules.interface import ValidatorInterface, Verdict

# team-app-env, e.g. `payments-checkout-prod`
DEFAULT_PATTERN = r"[a-z0-9]+-[a-z0-9]+-[a-z0-9]+"


class NamingValidator(ValidatorInterface):
    """
    Deny objects whose name doesn't fully match the naming convention.

    Objects without a fixed name (only `generateName`) are named by their
    controller and admitted.
    """

    pattern: re.Pattern

    def __init__(self, name: str, pattern: str = DEFAULT_PATTERN, **kwargs):
        super().__init__(name, **kwargs)
        try:
            self.pattern = re.compile(pattern)
        except re.error as err:
            raise InvalidConfigurationFormatError(
                message="Naming pattern of rule {rule_name} is invalid: {error}.",
                rule_name=name,
                error=str(err),
            ) from err

    async def validate(self, admission_request, **kwargs):
        metadata = admission_request.object.get("metadata") or {}
        object_name = metadata.get("name")
        if not object_name or self.pattern.fullmatch(object_name):
            return Verdict(True)
        return Verdict(
            False,
            f'{admission_request.kind} name "{object_name}" does not follow the '
            f'naming convention "{self.pattern.pattern}"',
        )
