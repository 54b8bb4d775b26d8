from portier.patch import PatchDraft, pointer
from portier.rules.interface import MutatorInterface
from portier.workload_object import WorkloadObject


class LabelsMutator(MutatorInterface):
    """
    Ensure a set of labels on the object. Existing labels are left alone
    unless `overwrite` is set. With `pod_template` the labels are also put on
    the pod template of workload resources.
    """

    labels: dict
    overwrite: bool
    pod_template: bool

    def __init__(
        self,
        name: str,
        labels: dict,
        overwrite: bool = False,
        pod_template: bool = False,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self.labels = {str(key): str(value) for key, value in labels.items()}
        self.overwrite = overwrite
        self.pod_template = pod_template

    async def mutate(self, admission_request, **kwargs):
        tree = admission_request.object
        draft = PatchDraft(tree)
        prefixes = [("metadata",)]

        workload = WorkloadObject(tree)
        if self.pod_template and workload.is_workload and workload.kind != "Pod":
            prefixes.append(workload.pod_spec_path[:-1] + ("metadata",))

        for prefix in prefixes:
            for key, value in self.labels.items():
                path = pointer(*prefix, "labels", key)
                if self.overwrite or draft.get(path) is None:
                    draft.set(path, value)
        return draft.operations
