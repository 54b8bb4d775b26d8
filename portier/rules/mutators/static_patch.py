from portier.patch import PatchDraft, split_pointer
from portier.rules.interface import MutatorInterface


class StaticPatchMutator(MutatorInterface):
    """
    Put fixed values at fixed JSON pointer paths and remove others.
    Values are set before removals, both in configuration order.
    """

    values: dict
    remove: tuple

    def __init__(self, name: str, values: dict = None, remove: list = None, **kwargs):
        super().__init__(name, **kwargs)
        self.values = dict(values or {})
        self.remove = tuple(remove or ())
        for path in (*self.values, *self.remove):
            split_pointer(path)

    async def mutate(self, admission_request, **kwargs):
        draft = PatchDraft(admission_request.object)
        for path, value in self.values.items():
            draft.set(path, value)
        for path in self.remove:
            draft.remove(path)
        return draft.operations
