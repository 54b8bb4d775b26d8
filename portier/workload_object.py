from portier.patch import get_value, pointer

SUPPORTED_KINDS = (
    "Pod",
    "Deployment",
    "ReplicationController",
    "ReplicaSet",
    "DaemonSet",
    "StatefulSet",
    "Job",
    "CronJob",
)
CONTAINER_TYPES = ("containers", "initContainers")


class WorkloadObject:
    """
    Locates the pod template of a workload resource inside a schemaless
    object tree, so rules can address containers independent of the kind.
    """

    pod_spec_path = ("spec", "template", "spec")

    def __new__(cls, tree: dict):  # pylint: disable=unused-argument
        if tree.get("kind") == "Pod":
            return super(WorkloadObject, cls).__new__(Pod)
        elif tree.get("kind") == "CronJob":
            return super(WorkloadObject, cls).__new__(CronJob)
        return super(WorkloadObject, cls).__new__(WorkloadObject)

    def __init__(self, tree: dict):
        self._tree = tree
        self.kind = tree.get("kind", "")
        self.api_version = tree.get("apiVersion", "")
        metadata = tree.get("metadata") or {}
        self.name = metadata.get("name") or metadata.get("generateName") or ""
        self.labels = metadata.get("labels") or {}

    @property
    def is_workload(self) -> bool:
        return self.kind in SUPPORTED_KINDS

    @property
    def spec(self) -> dict:
        spec = get_value(self._tree, pointer(*self.pod_spec_path), {})
        return spec if isinstance(spec, dict) else {}

    @property
    def containers(self) -> dict:
        if not self.is_workload:
            return {}
        return {
            (container_type, index): container
            for container_type in CONTAINER_TYPES
            for index, container in enumerate(self.spec.get(container_type) or [])
            if isinstance(container, dict)
        }

    @property
    def images(self) -> dict:
        return {
            type_index: container.get("image")
            for type_index, container in self.containers.items()
        }

    def pod_spec_pointer(self, *segments) -> str:
        return pointer(*self.pod_spec_path, *segments)


class Pod(WorkloadObject):
    pod_spec_path = ("spec",)


class CronJob(WorkloadObject):
    pod_spec_path = ("spec", "jobTemplate", "spec", "template", "spec")
