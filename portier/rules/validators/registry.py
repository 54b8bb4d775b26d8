from portier.exceptions import InvalidImageFormatError
from portier.image import Image
from portier.rules.interface import ValidatorInterface, Verdict
from portier.workload_object import WorkloadObject


class RegistryValidator(ValidatorInterface):
    """
    Only admit workloads whose container images come from an approved
    registry (or repository) prefix.

    A prefix ends at a path boundary: `mycompany.azurecr.io` approves
    `mycompany.azurecr.io/app:1` but not `mycompany.azurecr.io.evil.com/app:1`.
    With `normalize`, images are expanded to their full reference first, so
    `nginx` is checked as `docker.io/library/nginx:latest`.
    """

    allowed_prefixes: tuple
    normalize: bool

    def __init__(
        self, name: str, allowed_prefixes: list, normalize: bool = False, **kwargs
    ):
        super().__init__(name, **kwargs)
        self.allowed_prefixes = tuple(prefix.rstrip("/") for prefix in allowed_prefixes)
        self.normalize = normalize

    def approves(self, reference: str) -> bool:
        return any(
            reference == prefix or reference.startswith(f"{prefix}/")
            for prefix in self.allowed_prefixes
        )

    async def validate(self, admission_request, **kwargs):
        violations = []
        workload = WorkloadObject(admission_request.object)
        for (container_type, index), image in workload.images.items():
            reference = image if isinstance(image, str) else ""
            if self.normalize:
                try:
                    reference = str(Image(reference))
                except InvalidImageFormatError as err:
                    violations.append(err.message)
                    continue
            if not self.approves(reference):
                violations.append(
                    f'image "{image}" of {container_type}[{index}] is not from approved registry'
                )
        if violations:
            return Verdict(False, "; ".join(violations))
        return Verdict(True)
