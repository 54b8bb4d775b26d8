from portier.rules.interface import ValidatorInterface, Verdict


class StaticValidator(ValidatorInterface):
    name: str
    approve: bool

    def __init__(self, name: str, approve: bool, reason: str = None, **kwargs):
        super().__init__(name, **kwargs)
        self.approve = approve
        self.reason = reason

    async def validate(self, admission_request, **kwargs):
        if not self.approve:
            return Verdict(False, self.reason or "Static deny.")
        return Verdict(True)
