import re
from typing import Optional

from portier.exceptions import InvalidImageFormatError

# follows https://github.com/distribution/distribution/blob/main/reference/regexp.go
_ALPHA_NUMERIC = r"[a-z0-9]+"
_SEPARATOR = r"(?:[_.]|__|[-]*)"
_PATH_COMPONENT = rf"{_ALPHA_NUMERIC}(?:{_SEPARATOR}{_ALPHA_NUMERIC})*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[[a-fA-F0-9:]+\])(?::[0-9]+)?"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[+._-][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_REFERENCE = re.compile(
    rf"^(?P<name>(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*)"
    rf"(?::(?P<tag>{_TAG}))?(?:@(?P<digest>{_DIGEST}))?$"
)

DEFAULT_REGISTRY = "docker.io"


class Image:
    """
    Parsed container image reference.

    Input:
        'registry.io/path/to/repo/image:tag'

    Output:
        registry = 'registry.io'
        repository = 'path/to/repo'
        name = 'image'
        tag = 'tag'
        digest = None

    Default registry is 'docker.io' (with repository 'library' for single
    component names) and default tag is 'latest'.
    """

    registry: str
    repository: Optional[str]
    name: str
    tag: Optional[str]
    digest: Optional[str]

    def __init__(self, image: str):
        match = _REFERENCE.match(image or "")
        if not match or len(match.group("name")) > 255:
            msg = "{image} is not a valid image reference."
            raise InvalidImageFormatError(message=msg, image=image)

        self.original = image
        components = match.group("name").split("/")
        self.name = components.pop()
        self.digest = match.group("digest")
        self.tag = match.group("tag") or (None if self.digest else "latest")

        # the first component only names a registry if it looks like a host
        if components and (
            re.search(r"[.:]", components[0])
            or components[0] == "localhost"
            or components[0] != components[0].lower()
        ):
            self.registry = components.pop(0)
        else:
            self.registry = DEFAULT_REGISTRY
        self.repository = "/".join(components) or (
            "library" if self.registry == DEFAULT_REGISTRY else None
        )

    def __str__(self):
        path = "/".join(item for item in (self.registry, self.repository) if item)
        tag = f":{self.tag}" if self.tag else ""
        digest = f"@{self.digest}" if self.digest else ""
        return f"{path}/{self.name}{tag}{digest}"

    def __eq__(self, other):
        return str(self) == str(other)
