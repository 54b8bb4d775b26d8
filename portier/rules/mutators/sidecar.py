import copy

from portier.exceptions import InvalidConfigurationFormatError
from portier.patch import PatchDraft
from portier.rules.interface import MutatorInterface
from portier.workload_object import WorkloadObject


class SidecarMutator(MutatorInterface):
    """
    Append a sidecar container to workloads, unless a container of the same
    name is already present.
    """

    container: dict

    def __init__(self, name: str, container: dict, **kwargs):
        super().__init__(name, **kwargs)
        if not isinstance(container, dict) or not container.get("name"):
            raise InvalidConfigurationFormatError(
                message="Sidecar of rule {rule_name} needs a container name.",
                rule_name=name,
            )
        self.container = copy.deepcopy(container)

    async def mutate(self, admission_request, **kwargs):
        tree = admission_request.object
        workload = WorkloadObject(tree)
        if not workload.is_workload:
            return []

        names = {
            container.get("name")
            for (container_type, _), container in workload.containers.items()
            if container_type == "containers"
        }
        if self.container["name"] in names:
            return []

        draft = PatchDraft(tree)
        draft.append(workload.pod_spec_pointer("containers"), self.container)
        return draft.operations
