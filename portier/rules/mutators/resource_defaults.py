import copy

from portier.patch import PatchDraft
from portier.rules.interface import MutatorInterface
from portier.workload_object import WorkloadObject

DEFAULT_RESOURCES = {
    "limits": {"memory": "256Mi", "cpu": "200m"},
    "requests": {"memory": "128Mi", "cpu": "100m"},
}


class ResourceDefaultsMutator(MutatorInterface):
    """
    Give every container without a `resources` section a default one.
    """

    resources: dict
    container_types: tuple

    def __init__(
        self,
        name: str,
        resources: dict = None,
        container_types: list = ("containers",),
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.resources = copy.deepcopy(resources or DEFAULT_RESOURCES)
        self.container_types = tuple(container_types)

    async def mutate(self, admission_request, **kwargs):
        tree = admission_request.object
        workload = WorkloadObject(tree)
        draft = PatchDraft(tree)
        for (container_type, index), container in workload.containers.items():
            if container_type in self.container_types and "resources" not in container:
                draft.set(
                    workload.pod_spec_pointer(container_type, index, "resources"),
                    self.resources,
                )
        return draft.operations
