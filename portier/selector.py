import fnmatch


class Selector:
    """
    Predicate over a request's operation, kind, group and namespace, deciding
    whether a rule applies at all. Evaluated before the rule body is invoked.

    Every field is a list of glob patterns. A missing or empty list matches
    anything.
    """

    operations: tuple
    kinds: tuple
    groups: tuple
    namespaces: tuple

    def __init__(
        self,
        operations: list = None,
        kinds: list = None,
        groups: list = None,
        namespaces: list = None,
    ):
        self.operations = tuple(operation.upper() for operation in operations or ())
        self.kinds = tuple(kinds or ())
        self.groups = tuple(groups or ())
        self.namespaces = tuple(namespaces or ())

    def matches(self, admission_request) -> bool:
        return (
            self.__match(self.operations, admission_request.operation)
            and self.__match(self.kinds, admission_request.kind)
            and self.__match(self.groups, admission_request.group)
            and self.__match(self.namespaces, admission_request.namespace)
        )

    @staticmethod
    def __match(patterns: tuple, value: str) -> bool:
        if not patterns:
            return True
        return any(fnmatch.fnmatchcase(value or "", pattern) for pattern in patterns)

    def __str__(self):
        return str(
            {
                "operations": list(self.operations),
                "kinds": list(self.kinds),
                "groups": list(self.groups),
                "namespaces": list(self.namespaces),
            }
        )
