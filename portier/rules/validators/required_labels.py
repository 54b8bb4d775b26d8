from portier.rules.interface import ValidatorInterface, Verdict


class RequiredLabelsValidator(ValidatorInterface):
    labels: tuple

    def __init__(self, name: str, labels: list, **kwargs):
        super().__init__(name, **kwargs)
        self.labels = tuple(labels)

    async def validate(self, admission_request, **kwargs):
        metadata = admission_request.object.get("metadata") or {}
        present = metadata.get("labels") or {}
        missing = [label for label in self.labels if label not in present]
        if missing:
            return Verdict(False, f"missing required labels: {', '.join(missing)}")
        return Verdict(True)
