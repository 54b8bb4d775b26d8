from portier.exceptions import NoSuchClassError
from portier.rules.mutators.labels import LabelsMutator
from portier.rules.mutators.resource_defaults import ResourceDefaultsMutator
from portier.rules.mutators.sidecar import SidecarMutator
from portier.rules.mutators.static_patch import StaticPatchMutator
from portier.rules.validators.external import ExternalPolicyValidator
from portier.rules.validators.naming import NamingValidator
from portier.rules.validators.registry import RegistryValidator
from portier.rules.validators.required_labels import RequiredLabelsValidator
from portier.rules.validators.static import StaticValidator


class Rule:
    class_map = {
        "resource_defaults": ResourceDefaultsMutator,
        "labels": LabelsMutator,
        "sidecar": SidecarMutator,
        "static_patch": StaticPatchMutator,
        "registry": RegistryValidator,
        "naming": NamingValidator,
        "required_labels": RequiredLabelsValidator,
        "static": StaticValidator,
        "external": ExternalPolicyValidator,
    }

    def __new__(cls, **kwargs):
        rule_type = kwargs.pop("type")
        try:
            rule_class = cls.class_map[rule_type]
        except KeyError:
            msg = "{rule_type} is not a supported rule type."
            raise NoSuchClassError(  # pylint: disable=raise-missing-from
                message=msg, rule_type=rule_type
            )
        return rule_class(**kwargs)
